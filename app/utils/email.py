# app/utils/email.py
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from app.config import settings

logger = logging.getLogger(__name__)

TEMPLATES = {
    "verification": (
        "Verify Your Email - AI Teleradiology",
        """
    Hello {first_name},

    Thank you for registering with AI Teleradiology. Please verify your email address
    by opening the link below:

    {url}

    This verification link will expire in 24 hours. If you didn't create an account
    with us, please ignore this email.

    AI Teleradiology
    """,
    ),
    "password_reset": (
        "Reset Your Password - AI Teleradiology",
        """
    Hello {first_name},

    We received a request to reset the password for your AI Teleradiology account.
    Use the link below to choose a new password:

    {url}

    This link will expire in 10 minutes. If you did not request a reset, you can
    safely ignore this email.

    AI Teleradiology
    """,
    ),
    "contact_confirmation": (
        "We received your inquiry - AI Teleradiology",
        """
    Hello {first_name},

    Thank you for contacting AI Teleradiology about "{subject}".
    A member of our team will get back to you soon.

    AI Teleradiology
    """,
    ),
}

def send_email(to: str, subject: str, body: str) -> bool:
    """Send a plain-text email; failures are logged, never raised."""
    if not settings.EMAIL_ENABLED:
        logger.info("Email disabled, skipping '%s' to %s", subject, to)
        return False

    msg = MIMEMultipart()
    msg['From'] = settings.EMAIL_FROM
    msg['To'] = to
    msg['Subject'] = subject
    msg.attach(MIMEText(body, 'plain'))

    try:
        with smtplib.SMTP(settings.EMAIL_HOST, settings.EMAIL_PORT) as server:
            server.starttls()
            if settings.EMAIL_USER:
                server.login(settings.EMAIL_USER, settings.EMAIL_PASS)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send '%s' to %s: %s", subject, to, e)
        return False

    logger.info("Sent '%s' to %s", subject, to)
    return True

def send_template_email(to: str, template: str, **context) -> bool:
    subject, body = TEMPLATES[template]
    return send_email(to, subject, body.format(**context))

def send_verification_email(to: str, first_name: str, token: str) -> bool:
    url = f"{settings.FRONTEND_URL}/verify-email?token={token}"
    return send_template_email(to, "verification", first_name=first_name, url=url)

def send_password_reset_email(to: str, first_name: str, token: str) -> bool:
    url = f"{settings.FRONTEND_URL}/reset-password?token={token}"
    return send_template_email(to, "password_reset", first_name=first_name, url=url)

def send_contact_confirmation(to: str, first_name: str, subject: str) -> bool:
    return send_template_email(to, "contact_confirmation", first_name=first_name, subject=subject)
