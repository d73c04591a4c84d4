import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from core.config import settings
from utils.logger import get_logger

# Setup logger
logger = get_logger(__name__)


def send_email(to_email: str, subject: str, body: str):
    """
    Deliver an HTML email over SMTP.

    Runs as a background task after the response is sent, so a delivery
    failure is logged here and never changes the outcome of the request
    that scheduled it.
    """
    # Skip email sending in test environment
    if settings.ENV == "testing":
        logger.info(
            "[TEST MODE] Email skipped",
            extra={"recipient": to_email, "subject": subject}
        )
        return

    logger.debug(
        "Attempting to send email",
        extra={"recipient": to_email, "subject": subject}
    )

    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = settings.MAIL_FROM
    message["To"] = to_email
    message.attach(MIMEText(body, "html"))

    try:
        with smtplib.SMTP(settings.MAIL_SERVER, settings.MAIL_PORT) as server:
            server.starttls()
            if settings.MAIL_USERNAME:
                server.login(settings.MAIL_USERNAME, settings.MAIL_PASSWORD)
            server.sendmail(settings.MAIL_FROM, to_email, message.as_string())

        logger.info(
            "Email sent successfully",
            extra={"recipient": to_email, "subject": subject}
        )

    except (smtplib.SMTPException, OSError) as e:
        logger.error(
            f"Failed to send email: {str(e)}",
            extra={
                "recipient": to_email,
                "subject": subject,
                "error": str(e),
                "error_type": type(e).__name__
            },
            exc_info=True
        )
        raise


def _wrap(title: str, content: str) -> str:
    return f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2 style="color: #2c3e50;">{title}</h2>
            {content}
        </div>
    </body>
    </html>
    """


def _button(url: str, label: str) -> str:
    return f"""
            <div style="margin: 30px 0;">
                <a href="{url}"
                style="display: inline-block; padding: 14px 28px; background-color: #3498db;
                        color: white; text-decoration: none; border-radius: 4px; font-weight: bold;">
                    {label}
                </a>
            </div>
            <p style="color: #999; font-size: 12px;">
                If the button does not work, copy this URL into your browser:<br>{url}
            </p>
    """


def send_verification_email(to_email: str, name: str, token: str):
    verify_url = f"{settings.FRONTEND_URL}/auth/verify-email/{token}"
    body = _wrap(
        f"Welcome, {name}!",
        f"<p>Please confirm your email address.</p>"
        f"{_button(verify_url, 'Verify Email')}"
        f"<p style=\"color: #666; font-size: 14px;\">This link expires in "
        f"{settings.VERIFICATION_TOKEN_EXPIRE_HOURS} hours.</p>"
    )
    send_email(to_email=to_email, subject="Verify Your Email", body=body)


def send_welcome_email(to_email: str, name: str):
    body = _wrap(
        f"Welcome, {name}!",
        f"<p>Your account is ready.</p>"
        f"{_button(settings.FRONTEND_URL, 'Start Shopping')}"
    )
    send_email(to_email=to_email, subject="Welcome to the Marketplace", body=body)


def send_password_reset_email(to_email: str, token: str):
    reset_url = f"{settings.FRONTEND_URL}/auth/reset-password/{token}"
    body = _wrap(
        "Password Reset Request",
        f"<p>We received a request to reset your password.</p>"
        f"{_button(reset_url, 'Reset Password')}"
        f"<p style=\"color: #666; font-size: 14px;\">This link expires in "
        f"{settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes. If you didn't request it, "
        f"ignore this email and your password will remain unchanged.</p>"
    )
    send_email(to_email=to_email, subject="Reset Your Password", body=body)


def send_account_activation_email(to_email: str, name: str, reason: str = "Account review completed successfully"):
    body = _wrap(
        "Your account is active",
        f"<p>Hi {name}, your account has been activated.</p><p>{reason}</p>"
    )
    send_email(to_email=to_email, subject="Account Activated", body=body)


def send_account_deactivation_email(to_email: str, name: str, reason: str = "Your account has been deactivated"):
    body = _wrap(
        "Your account was deactivated",
        f"<p>Hi {name}, your account has been deactivated and all sessions were signed out.</p>"
        f"<p>{reason}</p>"
    )
    send_email(to_email=to_email, subject="Account Deactivated", body=body)
