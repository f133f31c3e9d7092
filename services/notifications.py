import logging

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType

import config

logger = logging.getLogger(__name__)


def _mail_config():
    return ConnectionConfig(
        MAIL_USERNAME=config.MAIL_USERNAME,
        MAIL_PASSWORD=config.MAIL_PASSWORD,
        MAIL_FROM=config.MAIL_FROM,
        MAIL_PORT=config.MAIL_PORT,
        MAIL_SERVER=config.MAIL_SERVER,
        MAIL_STARTTLS=config.MAIL_STARTTLS,
        MAIL_SSL_TLS=config.MAIL_SSL_TLS,
        USE_CREDENTIALS=True,
        VALIDATE_CERTS=True,
    )


def _approval_body(approved):
    if approved:
        status_line = "Your account has been approved. You can now sign in to the portal."
    else:
        status_line = "Your account approval has been revoked. Contact the administration office for details."
    return f"""
    <html>
        <body>
            <p>Hello,</p>
            <p>{status_line}</p>
            <p><a href="{config.PORTAL_URL}">{config.PORTAL_URL}</a></p>
            <p><small>Campus Portal Administration</small></p>
        </body>
    </html>
    """


async def notify_approval(email, approved):
    """Fire-and-forget approval email. Never raises."""
    if not config.mail_configured():
        logger.info("Mail not configured, skipping approval email to %s", email)
        return False

    try:
        message = MessageSchema(
            subject="Account approved" if approved else "Account approval revoked",
            recipients=[email],
            body=_approval_body(approved),
            subtype=MessageType.html,
        )
        await FastMail(_mail_config()).send_message(message)
    except Exception:
        logger.exception("Failed to send approval email to %s", email)
        return False
    logger.info("Approval email sent to %s", email)
    return True
