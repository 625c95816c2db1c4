from flask_mail import Message

from storefront.extensions import mail


def _clean_recipients(recipients) -> list[str]:
    if isinstance(recipients, str):
        recipients = [recipients]
    return [r.strip() for r in recipients or [] if r and r.strip()]


def send_email(subject, recipients, body, html=None, attachments=None, sender=None, reply_to=None):
    """
    Send one message through Flask-Mail and return it.

    `attachments` is a list of dicts: filename, content (bytes), mimetype.
    Raises ValueError when nobody is left to send to; SMTP errors propagate
    so callers can decide whether to retry.
    """
    to = _clean_recipients(recipients)
    if not to:
        raise ValueError("No recipients given")

    msg = Message(subject=subject or "", recipients=to, body=body or "", html=html,
                  sender=sender, reply_to=reply_to, charset="utf-8")

    for att in attachments or []:
        content = att.get("content")
        if content is None:
            continue
        msg.attach(att.get("filename") or "attachment",
                   att.get("mimetype") or "application/octet-stream",
                   content)

    mail.send(msg)
    return msg
