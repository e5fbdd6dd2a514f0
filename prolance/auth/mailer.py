import logging
import os
import smtplib
from email.message import EmailMessage

logger = logging.getLogger(__name__)

SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_FROM = os.getenv("SMTP_FROM", "Prolance <no-reply@prolance.io>")
SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() in ("1", "true", "yes")
SMTP_TIMEOUT = float(os.getenv("SMTP_TIMEOUT", "10"))


class MailerError(RuntimeError):
    pass


def mask_email(email: str) -> str:
    local, _, domain = email.partition("@")
    if len(local) <= 2:
        return f"{local}***@{domain}"
    return f"{local[:2]}***@{domain}"


def send_email(email: str, subject: str, body: str):
    """
    Send a plain-text email through the configured SMTP relay.
    Any connection or protocol failure surfaces as MailerError.
    """
    if not SMTP_HOST:
        raise MailerError("SMTP_HOST is not configured.")
    if not email:
        raise MailerError("Recipient email is required")

    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = SMTP_FROM
    message["To"] = email
    message.set_content(body)

    try:
        with smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=SMTP_TIMEOUT) as smtp:
            if SMTP_USE_TLS:
                smtp.starttls()
            if SMTP_USER:
                smtp.login(SMTP_USER, SMTP_PASSWORD)
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as exc:
        raise MailerError(str(exc) or exc.__class__.__name__) from exc


def send_otp_email(email: str, name: str, otp: str, expire_minutes: int):
    body = (
        f"Hello {name},\n\n"
        f"Your Prolance password reset code is {otp}.\n"
        f"It expires in {expire_minutes} minutes.\n\n"
        "If you did not request a password reset, you can ignore this email.\n"
    )
    send_email(email, "Password Reset OTP - Prolance", body)
    logger.info("Password reset OTP sent to %s", mask_email(email))
