# mobile_crm/services/email_service.py
import smtplib
import ssl
from email.message import EmailMessage
from typing import Optional

from mobile_crm.logger import get_logger

logger = get_logger(__name__)

OTP_SUBJECT = "Mobile CRM - Password Reset OTP"

OTP_HTML = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
    <h2 style="color: #4f46e5;">Password Reset Request</h2>
    <p>You requested a password reset for your Mobile CRM account.</p>
    <p>Your One-Time Password (OTP) is:</p>
    <h1 style="color: #333; letter-spacing: 5px; background: #f3f4f6; padding: 10px; text-align: center; border-radius: 5px;">{otp}</h1>
    <p>This OTP is valid for {ttl_minutes} minutes. Do not share this with anyone.</p>
    <p>If you did not request this, please ignore this email.</p>
</div>
"""


class EmailService:
    """
    SMTP notification gateway for OTP codes.

    send_otp() never raises: it reports failure by returning False so the
    caller can fall back to logging the code.
    """

    def __init__(
        self,
        *,
        host: str,
        port: int = 587,
        user: Optional[str] = None,
        password: Optional[str] = None,
        sender: Optional[str] = None,
        timeout: int = 10,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender or user
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> "EmailService":
        return cls(
            host=config.get("EMAIL_HOST", "smtp.gmail.com"),
            port=int(config.get("EMAIL_PORT", 587)),
            user=config.get("EMAIL_USER"),
            password=config.get("EMAIL_PASS"),
            sender=config.get("EMAIL_FROM"),
        )

    @property
    def is_configured(self) -> bool:
        return all([self.host, self.user, self.password, self.sender])

    def build_otp_message(self, to: str, otp: str, ttl_minutes: int) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = OTP_SUBJECT
        msg["From"] = self.sender
        msg["To"] = to
        msg.set_content(
            f"Your One-Time Password (OTP) is: {otp}\n"
            f"This OTP is valid for {ttl_minutes} minutes. Do not share this with anyone.\n"
            "If you did not request this, please ignore this email."
        )
        msg.add_alternative(OTP_HTML.format(otp=otp, ttl_minutes=ttl_minutes), subtype="html")
        return msg

    def send_otp(self, to: str, otp: str, ttl_minutes: int = 10) -> bool:
        if not self.is_configured:
            logger.warning("[email] SMTP not configured, OTP email not sent")
            return False

        try:
            # 非法收件地址（如含换行）在构造邮件头时抛 ValueError
            msg = self.build_otp_message(to, otp, ttl_minutes)
            context = ssl.create_default_context()
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls(context=context)
                server.login(self.user, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError, ValueError) as e:
            logger.error(f"[email] failed to send OTP email: {e}")
            return False

        logger.info("[email] OTP email sent")
        return True
