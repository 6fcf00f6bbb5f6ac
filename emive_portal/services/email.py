from __future__ import annotations

import asyncio
import smtplib
import ssl
from email.message import EmailMessage
from typing import Iterable, Sequence

from emive_portal.core.config import get_settings
from emive_portal.core.logging import log_info, log_warning


class EmailDispatchError(Exception):
    """Raised when an email fails to send via SMTP."""


def _normalise_recipients(recipients: Iterable[str]) -> list[str]:
    unique: list[str] = []
    for address in recipients:
        if not address:
            continue
        normalised = address.strip()
        if normalised and normalised not in unique:
            unique.append(normalised)
    return unique


async def send_email(
    *,
    subject: str,
    recipients: Sequence[str],
    html_body: str,
    text_body: str | None = None,
    sender: str | None = None,
    timeout: float = 30.0,
) -> bool:
    """Send an email through the configured SMTP relay.

    Returns ``False`` without raising when there is nobody to send to or SMTP
    is not configured; raises :class:`EmailDispatchError` when the relay
    rejects the message.
    """

    settings = get_settings()
    to_addresses = _normalise_recipients(recipients)
    if not to_addresses:
        log_warning("Email delivery skipped because no recipients were provided", subject=subject)
        return False

    if not settings.smtp_host:
        log_warning("SMTP host not configured; email delivery skipped", subject=subject)
        return False

    message = EmailMessage()
    message["Subject"] = subject
    from_address = sender or settings.smtp_sender or settings.smtp_user or "no-reply@localhost"
    message["From"] = f"{settings.app_name} <{from_address}>"
    message["To"] = ", ".join(to_addresses)
    message.set_content(text_body or subject)
    message.add_alternative(html_body, subtype="html")

    def _dispatch() -> None:
        context = ssl.create_default_context()
        try:
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=timeout) as client:
                client.ehlo()
                if settings.smtp_use_tls:
                    client.starttls(context=context)
                    client.ehlo()
                if settings.smtp_user:
                    client.login(settings.smtp_user, settings.smtp_password or "")
                client.send_message(message)
        except smtplib.SMTPException as exc:
            raise EmailDispatchError(str(exc)) from exc
        except OSError as exc:
            raise EmailDispatchError(str(exc)) from exc

    await asyncio.to_thread(_dispatch)
    log_info("Email dispatched", subject=subject, recipients=len(to_addresses))
    return True
