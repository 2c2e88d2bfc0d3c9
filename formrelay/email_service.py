"""
Email delivery over an SMTP relay

The service is built once at startup. Without SMTP credentials, or outside
production, it only logs what it would have sent.
"""

import asyncio
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid, parseaddr
from typing import Any, Optional, Union

from .config import (
    IS_PRODUCTION,
    SMTP_FROM,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_TIMEOUT_SECONDS,
    SMTP_USER,
)
from .email_templates import EmailTemplate

logger = logging.getLogger(__name__)


@dataclass
class EmailOptions:
    to: Union[str, list[str]]
    subject: str
    text: Optional[str] = None
    html: Optional[str] = None
    template: Optional[EmailTemplate] = None
    template_data: Optional[dict[str, Any]] = None
    from_address: Optional[str] = None
    reply_to: Optional[str] = None

    @property
    def recipients(self) -> list[str]:
        return [self.to] if isinstance(self.to, str) else list(self.to)


@dataclass(frozen=True)
class DispatchOutcome:
    """Result of a send attempt; truthy when the notification counts as sent"""

    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    delivered: bool = False

    def __bool__(self) -> bool:
        return self.success


class SmtpTransport:
    """Thin smtplib wrapper: one connection per message"""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 30,
        use_tls: bool = True,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout
        self.use_tls = use_tls

    def _connect(self) -> smtplib.SMTP:
        if self.port == 465:
            context = ssl.create_default_context()
            server = smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            if self.use_tls:
                context = ssl.create_default_context()
                server.starttls(context=context)

        if self.username:
            server.login(self.username, self.password or "")
        return server

    def send_mail(self, message: MIMEMultipart) -> str:
        """Deliver a composed message and return its Message-ID"""
        sender = parseaddr(message["From"])[1]
        recipients = [addr for _, addr in (parseaddr(a.strip()) for a in message["To"].split(","))]

        server = self._connect()
        try:
            server.sendmail(sender, recipients, message.as_string())
        finally:
            try:
                server.quit()
            except smtplib.SMTPException:
                server.close()

        return message["Message-ID"]

    def verify(self):
        """Open a session and log in, raising on any failure"""
        server = self._connect()
        server.quit()


class EmailService:
    def __init__(
        self,
        transport: Optional[SmtpTransport] = None,
        default_from: str = SMTP_FROM,
        production: bool = IS_PRODUCTION,
    ):
        self.transport = transport
        self.default_from = default_from
        self.production = production

    @property
    def is_configured(self) -> bool:
        return self.transport is not None

    @property
    def delivers(self) -> bool:
        """Whether send_email performs real network I/O"""
        return self.is_configured and self.production

    def build_message(self, options: EmailOptions, html: Optional[str], text: Optional[str]) -> MIMEMultipart:
        sender = options.from_address or self.default_from

        msg = MIMEMultipart("alternative")
        msg["Subject"] = options.subject
        msg["From"] = sender
        msg["To"] = ", ".join(options.recipients)
        msg["Date"] = formatdate(localtime=False)
        msg["Message-ID"] = make_msgid(domain=parseaddr(sender)[1].split("@")[-1] or None)
        if options.reply_to:
            msg["Reply-To"] = options.reply_to

        # Plain text first so clients prefer the HTML part
        if text is not None:
            msg.attach(MIMEText(text, "plain", "utf-8"))
        if html is not None:
            msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    async def send_email(self, options: EmailOptions) -> DispatchOutcome:
        """
        Send an email, or log it when delivery is disabled

        Args:
            options: Recipients, subject and either bodies or a template + data

        Returns:
            DispatchOutcome; never raises
        """
        if not self.delivers:
            logger.info(
                f"📧 Email would be sent in production: to={options.recipients} "
                f"subject={options.subject!r} reply_to={options.reply_to}"
            )
            return DispatchOutcome(success=True)

        try:
            html, text = options.html, options.text
            if options.template is not None and options.template_data is not None:
                rendered = options.template.render(options.template_data)
                html, text = rendered.html, rendered.text

            message = self.build_message(options, html, text)
            message_id = await asyncio.to_thread(self.transport.send_mail, message)

            logger.info(f"✅ Email sent successfully via {self.transport.host}: {message_id}")
            return DispatchOutcome(success=True, message_id=message_id, delivered=True)

        except Exception as e:
            logger.error(
                f"❌ Email send error to {options.recipients} (subject: {options.subject!r}): "
                f"{type(e).__name__}: {e}",
                exc_info=True,
            )
            return DispatchOutcome(success=False, error=f"{type(e).__name__}: {e}")

    async def verify_connection(self) -> bool:
        if not self.is_configured:
            return False

        try:
            await asyncio.to_thread(self.transport.verify)
            return True
        except Exception as e:
            logger.error(f"❌ Email connection verification failed: {e}")
            return False


def build_email_service() -> EmailService:
    """Create the process-wide email service from environment configuration"""
    if not (SMTP_HOST and SMTP_USER and SMTP_PASSWORD):
        logger.warning("⚠️ Email service not configured: Missing SMTP credentials")
        return EmailService(transport=None)

    transport = SmtpTransport(
        host=SMTP_HOST,
        port=SMTP_PORT,
        username=SMTP_USER,
        password=SMTP_PASSWORD,
        timeout=SMTP_TIMEOUT_SECONDS,
    )
    logger.info(f"📧 Email service configured for {SMTP_HOST}:{SMTP_PORT}")
    # The relay account doubles as the sender when SMTP_FROM is unset
    return EmailService(transport=transport, default_from=SMTP_FROM or SMTP_USER)
