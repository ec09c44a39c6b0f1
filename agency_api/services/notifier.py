# agency_api/services/notifier.py
from agency_api.extensions import db
from agency_api.models.notification import Notification


def notify(recipient_user_id, title, message, *, type="info", priority="medium", category="general",
           sender=None, action_url=None):
    """Queue a notification on the current session; caller commits. No recipient -> no-op."""
    if not recipient_user_id:
        return None
    n = Notification(
        title=title,
        message=message,
        type=type,
        priority=priority,
        category=category,
        action_url=action_url,
        recipient_user_id=recipient_user_id,
    )
    if sender is not None:
        n.sender_user_id = sender.id
        n.sender_name = sender.full_name
        n.sender_role = sender.role
    db.session.add(n)
    return n
