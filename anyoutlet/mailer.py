from typing import Dict, Optional, Tuple

import resend
from flask import current_app, render_template

OTP_EMAIL_SUBJECT = "Verify Any Outlet"


def send_email_via_resend(
    payload: Dict[str, object], api_key: Optional[str]
) -> Tuple[bool, Optional[str]]:
    configured_api_key = (api_key or "").strip()
    if not configured_api_key:
        return False, "Resend API key is not configured."

    previous_api_key = getattr(resend, "api_key", None)
    resend.api_key = configured_api_key
    try:
        response = resend.Emails.send(payload)
    except Exception as exc:
        return False, str(exc)
    finally:
        resend.api_key = previous_api_key

    if not isinstance(response, dict) or not response.get("id"):
        return False, str(response)

    return True, None


def send_otp_email(recipient_email: str, otp: str, shop_name: str):
    config = current_app.config
    html_body = render_template(
        "emails/verify_email.html", otp=otp, shop_name=shop_name
    )
    payload: Dict[str, object] = {
        "from": f"{shop_name} <{config['OTP_SENDER_EMAIL']}>",
        "to": [recipient_email],
        "subject": OTP_EMAIL_SUBJECT,
        "html": html_body,
        "text": f"OTP: {otp}",
    }
    return send_email_via_resend(payload, config.get("RESEND_API_KEY"))
