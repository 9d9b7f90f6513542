import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from app.core.config import settings

logger = logging.getLogger("email")


def _send(to_email: str, subject: str, body: str) -> bool:
    """
    Gửi 1 email HTML qua SMTP (STARTTLS).
    Best-effort: lỗi chỉ log lại, không raise ra ngoài.
    """
    if not settings.SMTP_EMAIL or not settings.SMTP_PASSWORD:
        logger.info(f"[EMAIL] SMTP not configured, skip '{subject}' -> {to_email}")
        return False

    msg = MIMEMultipart()
    msg['From'] = settings.SMTP_EMAIL
    msg['To'] = to_email
    msg['Subject'] = subject
    msg.attach(MIMEText(body, 'html'))

    try:
        server = smtplib.SMTP(settings.SMTP_SERVER, settings.SMTP_PORT, timeout=15)
        try:
            # EHLO -> nâng cấp TLS -> EHLO lại
            server.ehlo()
            server.starttls()
            server.ehlo()
            server.login(settings.SMTP_EMAIL, settings.SMTP_PASSWORD)
            server.sendmail(settings.SMTP_EMAIL, to_email, msg.as_string())
        finally:
            server.quit()
    except (smtplib.SMTPException, OSError) as e:
        logger.warning(f"[EMAIL] Failed to send '{subject}' to {to_email}: {e}")
        return False

    logger.info(f"[EMAIL] Sent '{subject}' to {to_email}")
    return True


def send_account_email(to_email: str, full_name: str, temp_password: str) -> bool:
    body = f"""
    <h3>Hello {full_name},</h3>
    <p>Your employee account has been created.</p>
    <p><b>Login details:</b></p>
    <ul>
        <li>Email: <b>{to_email}</b></li>
        <li>Temporary password: <b>{temp_password}</b></li>
    </ul>
    <p>Please sign in and change your password right away.</p>
    <p>Regards,<br>HR Team</p>
    """
    return _send(to_email, "Your account details", body)


def send_leave_decision_email(to_email: str, full_name: str, leave_type: str,
                              start_date, end_date, status: str) -> bool:
    body = f"""
    <h3>Hello {full_name},</h3>
    <p>Your {leave_type} leave request from <b>{start_date}</b> to <b>{end_date}</b>
    has been <b>{status}</b>.</p>
    <p>Regards,<br>HR Team</p>
    """
    return _send(to_email, f"Leave request {status}", body)
