import html
import logging
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

from fastapi.concurrency import run_in_threadpool

from ..config import settings

logger = logging.getLogger(__name__)


class EmailService:
    @staticmethod
    def _deliver(to_email: str, msg: MIMEMultipart) -> None:
        # SSL first, fall back to STARTTLS
        try:
            with smtplib.SMTP_SSL(settings.SMTP_SERVER, 465, timeout=10) as server:
                server.login(settings.SENDER_EMAIL, settings.SENDER_PASSWORD)
                server.sendmail(settings.SENDER_EMAIL, to_email, msg.as_string())
            logger.info(f"Email sent (SSL/465) -> {to_email}")
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(f"SSL send failed ({e}), retrying with TLS (587)")
            with smtplib.SMTP(settings.SMTP_SERVER, 587, timeout=10) as server:
                server.starttls()
                server.login(settings.SENDER_EMAIL, settings.SENDER_PASSWORD)
                server.sendmail(settings.SENDER_EMAIL, to_email, msg.as_string())
            logger.info(f"Email sent (TLS/587) -> {to_email}")

    @staticmethod
    async def send_email(to_email: str, subject: str, body: str) -> bool:
        """Send an HTML email; returns False instead of raising on failure"""
        if not settings.SENDER_EMAIL or not settings.SENDER_PASSWORD:
            logger.warning("SMTP not configured, logging email instead")
            logger.info(f"To: {to_email} | Subject: {subject}")
            return True

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((settings.SENDER_NAME, settings.SENDER_EMAIL))
        msg["To"] = to_email
        msg.attach(MIMEText(body, "html"))

        try:
            await run_in_threadpool(EmailService._deliver, to_email, msg)
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Email send failed to {to_email}: {e}")
            return False

    # -----------------------------------------------------------
    @staticmethod
    def plain(value: str) -> str:
        """Stored titles and names are entity-escaped; undo that for subjects"""
        return html.unescape(value or "")

    @staticmethod
    def markup(value: str) -> str:
        """Escape exactly once, whether or not the value was escaped on input"""
        return html.escape(EmailService.plain(value))

    # HTML TEMPLATE
    # -----------------------------------------------------------
    @staticmethod
    def template(title: str, paragraphs: list, cta_text: str = None, cta_url: str = None) -> str:
        """Wrap already-escaped paragraphs in the shared email layout"""
        body = "".join(f'<p class="text">{p}</p>' for p in paragraphs)
        cta = (
            f'<p><a class="button" href="{html.escape(cta_url)}">{html.escape(cta_text)}</a></p>'
            if cta_text and cta_url
            else ""
        )
        return f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="UTF-8" />
            <style>
                body {{
                    font-family: Arial, sans-serif;
                    background: #EFF6FF;
                    padding: 20px;
                }}
                .card {{
                    max-width: 600px;
                    margin: auto;
                    background: #fff;
                    border-radius: 12px;
                    padding: 30px;
                    border-left: 8px solid #3B82F6;
                }}
                .title {{
                    font-size: 22px;
                    font-weight: bold;
                    color: #3B82F6;
                    margin-bottom: 10px;
                }}
                .text {{
                    color: #555;
                    font-size: 15px;
                    line-height: 1.5;
                }}
                .button {{
                    display: inline-block;
                    background: #3B82F6;
                    color: #fff;
                    padding: 12px 20px;
                    border-radius: 6px;
                    text-decoration: none;
                }}
                .footer {{
                    margin-top: 25px;
                    font-size: 12px;
                    color: #6B7280;
                    text-align: center;
                }}
            </style>
        </head>
        <body>
            <div class="card">
                <div class="title">{html.escape(title)}</div>
                {body}
                {cta}
                <div class="footer">
                    This is an automated message from {html.escape(settings.SENDER_NAME)}.
                    Please do not reply to this email.
                </div>
            </div>
        </body>
        </html>
        """

    # -----------------------------------------------------------
    # EMAIL TYPES
    # -----------------------------------------------------------

    @staticmethod
    async def send_test_email(email: str) -> bool:
        subject = f"Test Email from {settings.SENDER_NAME}"
        body = EmailService.template(
            title="Test Email",
            paragraphs=[
                "This is a test email from your study planner.",
                "If you're receiving this, your email notifications are working correctly!",
            ],
        )
        return await EmailService.send_email(email, subject, body)

    @staticmethod
    async def send_custom_reminder(
        email: str, plan_title: str, deadline: datetime, instance_id: str, reminder_text: str
    ) -> bool:
        title = EmailService.markup(plan_title)
        subject = f"Reminder: {EmailService.plain(plan_title)} is due in {reminder_text}"
        body = EmailService.template(
            title="Study Plan Reminder",
            paragraphs=[
                f"Your study plan <strong>{title}</strong> is due in {html.escape(reminder_text)}.",
                f"<strong>Deadline:</strong> {deadline.strftime('%d %b %Y, %H:%M')} UTC",
                "Keep going, you're almost there!",
            ],
            cta_text="Continue studying",
            cta_url=f"{settings.APP_BASE_URL}/instances/{instance_id}",
        )
        return await EmailService.send_email(email, subject, body)

    @staticmethod
    async def send_share_invitation(
        email: str, sharer_name: str, plan_title: str, plan_id: str, role: str
    ) -> bool:
        subject = f"{EmailService.plain(sharer_name)} shared a study plan with you"
        body = EmailService.template(
            title="You've been invited to collaborate",
            paragraphs=[
                f"<strong>{EmailService.markup(sharer_name)}</strong> shared the study plan "
                f"<strong>{EmailService.markup(plan_title)}</strong> with you as {html.escape(role)}.",
                "Sign in with this email address to open it.",
            ],
            cta_text="Open study plan",
            cta_url=f"{settings.APP_BASE_URL}/plans/{plan_id}",
        )
        return await EmailService.send_email(email, subject, body)
