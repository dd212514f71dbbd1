import base64
import re
from io import BytesIO

from werkzeug.datastructures import FileStorage

from anyoutlet import mailer, payments, uploads


def test_promptpay_payload_carries_phone_and_amount():
    payload = payments.build_promptpay_payload("0812345678", 99.5)

    assert "A000000677010111" in payload
    assert "66812345678" in payload
    assert "99.50" in payload


def test_build_payment_qr_returns_png_data_url():
    data_url = payments.build_payment_qr("0812345678", 120)

    prefix = "data:image/png;base64,"
    assert data_url.startswith(prefix)
    assert base64.b64decode(data_url[len(prefix):]).startswith(b"\x89PNG")


def test_generate_image_filename_is_time_based():
    assert re.fullmatch(r"img-\d{13}\.jpg", uploads.generate_image_filename(".jpg"))


def test_save_product_image_without_file(tmp_path):
    filename, failure = uploads.save_product_image(None, str(tmp_path), {"png"})

    assert filename == ""
    assert failure is None


def test_save_and_remove_product_image(tmp_path):
    image = FileStorage(stream=BytesIO(b"gif-bytes"), filename="../../photo.gif")

    filename, failure = uploads.save_product_image(image, str(tmp_path), {"gif"})

    assert failure is None
    assert (tmp_path / filename).read_bytes() == b"gif-bytes"

    uploads.remove_product_image(filename, str(tmp_path))
    assert not (tmp_path / filename).exists()


def test_send_email_via_resend_requires_api_key():
    sent, error = mailer.send_email_via_resend({"to": ["a@b.c"]}, "  ")

    assert sent is False
    assert "not configured" in error


def test_send_email_via_resend_reports_missing_id(monkeypatch):
    monkeypatch.setattr("resend.Emails.send", lambda payload: {"error": "rejected"})

    sent, error = mailer.send_email_via_resend({"to": ["a@b.c"]}, "re_key")

    assert sent is False
    assert "rejected" in error


def test_otp_email_uses_shop_name(app, sent_emails):
    with app.test_request_context():
        sent, error = mailer.send_otp_email("al@x.com", "123456", "Corner Store")

    assert sent is True
    assert error is None
    assert sent_emails[0]["from"].startswith("Corner Store <")
    assert sent_emails[0]["text"] == "OTP: 123456"
    assert "123456" in sent_emails[0]["html"]
