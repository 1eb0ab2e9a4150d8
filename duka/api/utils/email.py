# duka/api/utils/email.py
from flask_mail import Message

from duka.extensions import mail


def send_email(subject, recipients, body, sender=None):
    """Plain-text UTF-8 e-mail through Flask-Mail."""
    if isinstance(recipients, str):
        recipients = [recipients]

    msg = Message(
        subject=subject or "",
        recipients=list(recipients or []),
        body=body or "",
        sender=sender,
    )
    msg.charset = "utf-8"

    mail.send(msg)
    return msg
