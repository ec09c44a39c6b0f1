# agency_api/blueprints/notifications.py
from __future__ import annotations

from datetime import datetime

from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from sqlalchemy import or_

from agency_api.common.auth import current_user, current_user_id, requires_roles
from agency_api.common.errors import NotFound
from agency_api.common.http import ok, fail
from agency_api.common.paging import paginate
from agency_api.common.validation import FormErrors, clean_text, is_blank
from agency_api.extensions import db
from agency_api.models.notification import (
    NOTIFICATION_CATEGORIES, NOTIFICATION_PRIORITIES, NOTIFICATION_TYPES,
    Notification, NotificationRead,
)
from agency_api.models.user import ROLES, User

bp = Blueprint("notifications", __name__, url_prefix="/api/v1/notifications")


def _read_ids(uid, ids):
    if not ids:
        return set()
    rows = NotificationRead.query.filter(NotificationRead.user_id == uid,
                                         NotificationRead.notification_id.in_(ids)).all()
    return {r.notification_id for r in rows}


def _row(n: Notification, read: bool):
    return {
        "id": n.id,
        "title": n.title,
        "message": n.message,
        "type": n.type,
        "priority": n.priority,
        "category": n.category,
        "action_url": n.action_url,
        "sender_name": n.sender_name,
        "sender_role": n.sender_role,
        "recipient_user_id": n.recipient_user_id,
        "broadcast": n.recipient_user_id is None,
        "is_read": read,
        "created_at": n.created_at.isoformat() if n.created_at else None,
    }


def validate_notification(d):
    errs = FormErrors()
    errs.text(d, "title", "Title is required")
    errs.text(d, "message", "Message is required")
    if not is_blank(d.get("sender_name")) and is_blank(d.get("sender_role")):
        errs.add("sender_role", "Sender role is required when sender name is provided")
    errs.choice(d, "sender_role", ROLES)
    errs.choice(d, "type", NOTIFICATION_TYPES)
    errs.choice(d, "priority", NOTIFICATION_PRIORITIES)
    errs.choice(d, "category", NOTIFICATION_CATEGORIES)
    rid = d.get("recipient_user_id")
    if rid and not User.query.get(rid):
        errs.add("recipient_user_id", "Unknown recipient")
    errs.raise_if_any()


def _mine():
    uid = current_user_id()
    return Notification.query.filter(or_(Notification.recipient_user_id == uid,
                                         Notification.recipient_user_id.is_(None)))


def _unread(qry, uid):
    read_sub = db.select(NotificationRead.notification_id).where(NotificationRead.user_id == uid)
    return qry.filter(Notification.id.notin_(read_sub))


def _get_visible(nid) -> Notification:
    n = _mine().filter(Notification.id == nid).first()
    if not n:
        raise NotFound("Notification")
    return n


def _mark(n: Notification, uid):
    if not NotificationRead.query.filter_by(notification_id=n.id, user_id=uid).first():
        db.session.add(NotificationRead(notification_id=n.id, user_id=uid, read_at=datetime.utcnow()))


@bp.get("")
@jwt_required()
def list_notifications():
    uid = current_user_id()
    qry = _mine()
    for arg, col in (("type", Notification.type), ("category", Notification.category),
                     ("priority", Notification.priority)):
        v = request.args.get(arg)
        if v:
            qry = qry.filter(col == v)
    if (request.args.get("unread") or "").lower() in ("1", "true", "yes"):
        qry = _unread(qry, uid)
    items, meta = paginate(qry, {"created_at": Notification.created_at, "priority": Notification.priority},
                           Notification.created_at.desc())
    read = _read_ids(uid, [n.id for n in items])
    return ok([_row(n, n.id in read) for n in items], **meta)


@bp.get("/unread-count")
@jwt_required()
def unread_count():
    return ok({"count": _unread(_mine(), current_user_id()).count()})


@bp.post("")
@requires_roles("general_manager", "hr", "project_coordinator")
def create_notification():
    d = request.get_json(silent=True, force=True) or {}
    validate_notification(d)
    u = current_user()
    n = Notification(
        title=d["title"].strip(),
        message=d["message"].strip(),
        type=d.get("type") or "info",
        priority=d.get("priority") or "medium",
        category=d.get("category") or "general",
        action_url=d.get("action_url"),
        recipient_user_id=d.get("recipient_user_id") or None,
        sender_user_id=u.id if u else None,
        sender_name=clean_text(d.get("sender_name")) or (u.full_name if u else None),
        sender_role=d.get("sender_role") or (u.role if u else None),
    )
    db.session.add(n)
    db.session.commit()
    return ok(_row(n, False), status=201)


@bp.post("/<int:nid>/read")
@jwt_required()
def mark_read(nid: int):
    n = _get_visible(nid)
    _mark(n, current_user_id())
    db.session.commit()
    return ok(_row(n, True))


@bp.post("/read-all")
@jwt_required()
def mark_all_read():
    uid = current_user_id()
    items = _unread(_mine(), uid).all()
    for n in items:
        _mark(n, uid)
    db.session.commit()
    return ok({"marked": len(items)})


@bp.delete("/<int:nid>")
@jwt_required()
def delete_notification(nid: int):
    n = _get_visible(nid)
    u = current_user()
    # a broadcast belongs to everyone; only its sender (or admin) removes it
    if n.recipient_user_id is None and not (u and (u.role == "admin" or u.id == n.sender_user_id)):
        return fail("Forbidden", status=403, code="FORBIDDEN")
    db.session.delete(n)
    db.session.commit()
    return ok({"id": nid, "deleted": True})
