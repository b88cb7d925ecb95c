# Overview: Owner broadcast messages fanned out to customer inboxes by tier.

from __future__ import annotations

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import (
    AppMessage,
    AppMessageRead,
    Role,
    User,
    UserRole,
    MESSAGE_CATEGORIES,
    ROLE_OWNER,
    ROLE_PROPRIETOR,
    ROLE_USER,
    TARGET_ALL,
    TARGET_USERS_ONLY,
    TIERS,
)
from ..time_utils import utcnow
from .concurrency import run_in_transaction


EXCLUDED_ROLES = (ROLE_OWNER, ROLE_PROPRIETOR)


def normalize_target(target: str | None) -> str:
    """Case-insensitive match against All / UsersOnly / tier names; anything else is All."""
    wanted = (target or "").strip().lower()
    for option in (TARGET_ALL, TARGET_USERS_ONLY, *TIERS):
        if option.lower() == wanted:
            return option
    return TARGET_ALL


def normalize_category(category: str | None) -> str:
    wanted = (category or "").strip().lower()
    for option in MESSAGE_CATEGORIES:
        if option.lower() == wanted:
            return option
    raise ValidationError(
        f"Unknown category: {category}",
        {"allowed": list(MESSAGE_CATEGORIES)},
    )


def _holders_of(*role_names: str):
    lowered = [r.lower() for r in role_names]
    return (
        db.select(UserRole.user_id)
        .join(Role, Role.id == UserRole.role_id)
        .where(db.func.lower(Role.name).in_(lowered))
    )


def target_users(target: str | None) -> list[User]:
    """Recipients for a selector. Owner and proprietor accounts never receive broadcasts."""
    target = normalize_target(target)
    query = db.session.query(User).filter(~User.id.in_(_holders_of(*EXCLUDED_ROLES)))

    if target == TARGET_USERS_ONLY:
        query = query.filter(User.id.in_(_holders_of(ROLE_USER)))
    elif target != TARGET_ALL:
        query = query.filter(User.tier == target)

    return query.order_by(User.id).all()


def send_message(
    sender: User | None,
    title: str,
    html_body: str,
    category: str | None = "Notification",
    target: str | None = TARGET_ALL,
) -> AppMessage:
    """Persist a message and one unread receipt per recipient."""
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title is required")
    if not (html_body or "").strip():
        raise ValidationError("Message body is required")
    category = normalize_category(category)
    target = normalize_target(target)

    def _op():
        message = AppMessage(
            title=title,
            html_body=html_body,
            category=category,
            target_tier=target,
            sender_user_id=sender.id if sender else None,
            created_at=utcnow(),
        )
        db.session.add(message)
        for user in target_users(target):
            message.receipts.append(AppMessageRead(user_id=user.id, is_read=False))
        db.session.flush()
        return message

    return run_in_transaction(_op)


def list_messages() -> list[AppMessage]:
    return db.session.query(AppMessage).order_by(AppMessage.created_at.desc(), AppMessage.id.desc()).all()


def get_message(message_id: int) -> AppMessage:
    message = db.session.get(AppMessage, message_id)
    if message is None:
        raise NotFoundError("Message not found", {"message_id": message_id})
    return message


def message_recipients(message_id: int) -> list[dict]:
    message = get_message(message_id)
    receipts = sorted(message.receipts, key=lambda r: r.user_id)
    return [
        {
            "user_id": r.user_id,
            "email": r.user.email,
            "tier": r.user.tier,
            "is_read": r.is_read,
            "read_at": r.to_dict()["read_at"],
        }
        for r in receipts
    ]


def inbox(user: User, category: str | None = None, search: str | None = None) -> list[AppMessageRead]:
    query = (
        db.session.query(AppMessageRead)
        .join(AppMessage, AppMessage.id == AppMessageRead.message_id)
        .filter(AppMessageRead.user_id == user.id)
    )
    if category and category.strip().lower() != "all":
        query = query.filter(AppMessage.category == normalize_category(category))
    if search and search.strip():
        needle = f"%{search.strip().lower()}%"
        query = query.filter(db.or_(
            db.func.lower(AppMessage.title).like(needle),
            db.func.lower(AppMessage.html_body).like(needle),
        ))
    return query.order_by(AppMessage.created_at.desc(), AppMessage.id.desc()).all()


def unread_count(user: User) -> int:
    return db.session.query(AppMessageRead).filter_by(user_id=user.id, is_read=False).count()


def mark_read(user: User, receipt_id: int) -> AppMessageRead:
    """Mark one of the user's receipts read. Already-read receipts keep their read_at."""
    def _op():
        receipt = db.session.query(AppMessageRead).filter_by(id=receipt_id, user_id=user.id).first()
        if receipt is None:
            raise NotFoundError("Message not found", {"receipt_id": receipt_id})
        if not receipt.is_read:
            receipt.is_read = True
            receipt.read_at = utcnow()
        return receipt

    return run_in_transaction(_op)


def mark_all_read(user: User) -> int:
    def _op():
        now = utcnow()
        receipts = db.session.query(AppMessageRead).filter_by(user_id=user.id, is_read=False).all()
        for receipt in receipts:
            receipt.is_read = True
            receipt.read_at = now
        return len(receipts)

    return run_in_transaction(_op)
