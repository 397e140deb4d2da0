import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from starlette.concurrency import run_in_threadpool

from attendease.core.config import settings

logger = logging.getLogger(__name__)


def email_configured() -> bool:
    return bool(settings.smtp_host and settings.smtp_user and settings.smtp_password)


def _send_smtp(to_email: str, subject: str, body: str) -> None:
    msg = MIMEMultipart()
    msg["From"] = settings.smtp_from or settings.smtp_user
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.attach(MIMEText(body, "plain"))

    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
        server.starttls()
        server.login(settings.smtp_user, settings.smtp_password)
        server.sendmail(msg["From"], [to_email], msg.as_string())


async def send_otp_email(to_email: str, otp: str) -> bool:
    """Deliver the reset code. Without SMTP settings the code is written to the log instead."""
    body = (
        f"Your password reset code is {otp}.\n"
        f"It expires in {settings.otp_expire_minutes} minutes."
    )
    if not email_configured():
        logger.warning("Email not configured; password reset OTP for %s is %s", to_email, otp)
        return False
    await run_in_threadpool(_send_smtp, to_email, "Password reset code", body)
    logger.info("Password reset OTP sent to %s", to_email)
    return True
