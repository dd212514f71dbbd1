"""PromptPay QR codes for checkout."""

import base64
from io import BytesIO

import qrcode
from promptpay import qrcode as promptpay_qrcode


def build_promptpay_payload(phone: str, amount: float) -> str:
    return promptpay_qrcode.generate_payload(str(phone).strip(), float(amount))


def payload_to_data_url(payload: str) -> str:
    image = qrcode.make(payload)
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


def build_payment_qr(phone: str, amount: float) -> str:
    """Return a PNG data URL of the PromptPay QR for ``amount`` to ``phone``."""
    return payload_to_data_url(build_promptpay_payload(phone, amount))
