# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Email sending service. Logs to console when SMTP not configured."""

import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from miniyelp_server.config import settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """SMTP delivery failed."""


def _html(plain_body: str) -> str:
    body_escaped = plain_body.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;").replace("\n", "<br>\n")
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: system-ui, sans-serif; color: #333; max-width: 560px;">
<div style="white-space: pre-wrap;">{body_escaped}</div>
</body>
</html>"""


async def send_email(to: str, subject: str, body: str) -> None:
    """Send an email (plain and HTML). Logs to console if SMTP not configured.

    Raises EmailDeliveryError when SMTP is configured but sending fails.
    """
    if not (settings.smtp_host and settings.smtp_user):
        logger.info("Email (SMTP not configured): To=%s Subject=%s Body=%s", to, subject, body[:200])
        return
    import smtplib

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = settings.smtp_from
    msg["To"] = to
    msg.attach(MIMEText(body, "plain"))
    msg.attach(MIMEText(_html(body), "html"))
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password or "")
            server.sendmail(settings.smtp_from, [to], msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        logger.exception("Failed to send email to %s", to)
        raise EmailDeliveryError(str(e)) from e


async def send_welcome(to: str, name: str, url: str) -> None:
    await send_email(
        to,
        "Welcome to the MiniYelp family!",
        f"Hi {name},\n\nWelcome to MiniYelp. Manage your account at {url}",
    )


async def send_password_reset(to: str, name: str, reset_url: str) -> None:
    await send_email(
        to,
        f"Your password reset token (valid for only {settings.password_reset_expire_minutes} minutes)",
        f"Hi {name},\n\nForgot your password? Submit a PATCH request with your new password "
        f"and password_confirm to: {reset_url}\n\nIf you didn't forget your password, please ignore this email.",
    )
