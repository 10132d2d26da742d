"""SMTP implementation of EmailProvider.

- aiosmtplib for the transport (STARTTLS on 587 by default)
- Jinja2 HTML templates from templates/emails/, plain-text alternative inline
- Outside production, a missing SMTP configuration logs the message instead
  of sending it so local signups still work
"""

import os
from email.message import EmailMessage
from email.utils import formataddr
from typing import Optional

import aiosmtplib
from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import EmailSettings
from shared.logging import get_logger, mask_email

log = get_logger(__name__)

_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)


class SmtpEmailProvider:
    def __init__(
        self,
        settings: EmailSettings,
        app_name: str = "MealVista",
        is_production: bool = False,
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._app_name = app_name
        self._is_production = is_production
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def _build_message(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = formataddr((self._settings.smtp_from_name, self._settings.smtp_from_email))
        msg["To"] = to_email
        msg.set_content(text_body)
        msg.add_alternative(html_body, subtype="html")
        return msg

    async def _send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        if not self._settings.smtp_enabled:
            if self._is_production:
                log.error("email_send_failed", reason="smtp_not_configured")
                return False
            log.warning(
                "email_console_fallback",
                to_email=mask_email(to_email),
                subject=subject,
            )
            return True

        message = self._build_message(to_email, subject, html_body, text_body)
        try:
            await aiosmtplib.send(
                message,
                hostname=self._settings.smtp_host,
                port=self._settings.smtp_port,
                username=self._settings.smtp_username,
                password=self._settings.smtp_password,
                start_tls=self._settings.smtp_use_tls,
            )
            log.info("email_sent_success", to_email=mask_email(to_email), subject=subject)
            return True
        except aiosmtplib.SMTPAuthenticationError as e:
            log.error(
                "email_send_error",
                to_email=mask_email(to_email),
                subject=subject,
                reason="authentication_failed",
                error=str(e),
            )
            return False
        except (aiosmtplib.SMTPException, OSError) as e:
            log.error(
                "email_send_error",
                to_email=mask_email(to_email),
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    async def send_verification_email(
        self, email: str, user_name: Optional[str], otp_code: str, expiry_minutes: int
    ) -> bool:
        subject = f"Verify Your Email - {self._app_name}"
        template = self._jinja.get_template("verification.html")
        html_body = template.render(
            otp_code=otp_code,
            user_name=user_name,
            expiry_minutes=expiry_minutes,
            app_name=self._app_name,
        )
        text_body = (
            f"Verify Your Email - {self._app_name}\n\n"
            f"Hello{f' {user_name}' if user_name else ''},\n\n"
            f"Your verification code is: {otp_code}\n\n"
            f"This code expires in {expiry_minutes} minute(s).\n"
            f"Never share this code with anyone. If you didn't request it, "
            f"you can ignore this email."
        )
        return await self._send(email, subject, html_body, text_body)

    async def send_password_reset_email(
        self, email: str, user_name: Optional[str], otp_code: str, expiry_minutes: int
    ) -> bool:
        subject = f"Reset Your Password - {self._app_name}"
        template = self._jinja.get_template("password_reset.html")
        html_body = template.render(
            otp_code=otp_code,
            user_name=user_name,
            expiry_minutes=expiry_minutes,
            app_name=self._app_name,
        )
        text_body = (
            f"Reset Your Password - {self._app_name}\n\n"
            f"Hello{f' {user_name}' if user_name else ''},\n\n"
            f"Your password reset code is: {otp_code}\n\n"
            f"This code expires in {expiry_minutes} minute(s).\n"
            f"If you didn't request a password reset, your account is still "
            f"safe and you can ignore this email."
        )
        return await self._send(email, subject, html_body, text_body)

    async def send_welcome_email(self, email: str, user_name: Optional[str]) -> bool:
        subject = f"Welcome to {self._app_name}!"
        template = self._jinja.get_template("welcome.html")
        html_body = template.render(user_name=user_name, app_name=self._app_name)
        text_body = (
            f"Welcome to {self._app_name}{f', {user_name}' if user_name else ''}!\n\n"
            f"Your email is verified and your account is ready."
        )
        return await self._send(email, subject, html_body, text_body)
