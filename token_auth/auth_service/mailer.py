"""
Outbound templated email.

Messages name a template and a context; sinks render the template and hand the
result to a transport. ``LoggingMailSink`` writes messages to the log instead of
sending them (development); ``SmtpMailSink`` delivers over SMTP.
"""
import logging
import smtplib
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

import jinja2

from .config import Settings
from .errors import MailDeliveryError

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"


@dataclass(frozen=True)
class MailMessage:
    to: str
    subject: str
    template: str
    context: Dict[str, Any] = field(default_factory=dict)


class MailSink(Protocol):
    def send(self, message: MailMessage) -> None: ...


def get_jinja_env() -> jinja2.Environment:
    """Create Jinja2 environment for email templates."""
    return jinja2.Environment(
        loader=jinja2.FileSystemLoader(TEMPLATE_DIR),
        autoescape=jinja2.select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render_message(env: jinja2.Environment, message: MailMessage) -> tuple[str, Optional[str]]:
    """
    Render the HTML body and, when a ``.txt`` variant exists, the plain text body.
    """
    html_body = env.get_template(f"{message.template}.html").render(**message.context)
    try:
        text_body = env.get_template(f"{message.template}.txt").render(**message.context)
    except jinja2.TemplateNotFound:
        text_body = None
    return html_body, text_body


class LoggingMailSink:
    """Logs the rendered message instead of sending it."""

    def __init__(self, env: Optional[jinja2.Environment] = None):
        self.env = env or get_jinja_env()

    def send(self, message: MailMessage) -> None:
        html_body, text_body = render_message(self.env, message)
        logger.info(
            "[DEV] Email to=%s subject=%r template=%s\n%s",
            message.to, message.subject, message.template, text_body or html_body
        )


class SmtpMailSink:
    def __init__(self, settings: Settings, env: Optional[jinja2.Environment] = None):
        self.settings = settings
        self.env = env or get_jinja_env()

    def _build(self, message: MailMessage) -> MIMEMultipart:
        html_body, text_body = render_message(self.env, message)
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = self.settings.MAIL_FROM
        msg["To"] = message.to
        if text_body:
            msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg

    def send(self, message: MailMessage) -> None:
        msg = self._build(message)
        s = self.settings
        try:
            with smtplib.SMTP(s.SMTP_HOST, s.SMTP_PORT, timeout=s.SMTP_TIMEOUT) as server:
                if s.SMTP_USE_TLS:
                    server.starttls()
                if s.SMTP_USER:
                    server.login(s.SMTP_USER, s.SMTP_PASSWORD.get_secret_value())
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send %s email to %s: %s", message.template, message.to, e)
            raise MailDeliveryError(str(e)) from e
        logger.info("Email sent: to=%s template=%s", message.to, message.template)


def build_mail_sink(settings: Settings) -> MailSink:
    if settings.MAIL_TRANSPORT == "smtp":
        return SmtpMailSink(settings)
    return LoggingMailSink()
