"""
Messaging fan-out and inbox tests.
"""

import pytest

from storefront.errors import NotFoundError, ValidationError
from storefront.models import AppMessageRead, ROLE_ADMIN, ROLE_OWNER, ROLE_PROPRIETOR, TIER_GOLD, TIER_SILVER
from storefront.services import auth_service, messaging_service


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("all", "All"),
        ("USERSONLY", "UsersOnly"),
        ("gold", "Gold"),
        (" Platinum ", "Platinum"),
        ("diamond", "All"),
        ("", "All"),
        (None, "All"),
    ],
)
def test_normalize_target(raw, expected):
    assert messaging_service.normalize_target(raw) == expected


@pytest.fixture
def audience(db_session, make_user):
    return {
        "owner": make_user("boss@example.com", role=ROLE_OWNER),
        "proprietor": make_user("shopkeeper@example.com", role=ROLE_PROPRIETOR),
        "admin": make_user("helper@example.com", role=ROLE_ADMIN),
        "bronze": make_user("bronze@example.com"),
        "gold": make_user("gold@example.com", tier=TIER_GOLD),
    }


def _emails(users):
    return {u.email for u in users}


def test_all_excludes_owner_and_proprietor(audience):
    assert _emails(messaging_service.target_users("All")) == {
        "helper@example.com", "bronze@example.com", "gold@example.com",
    }


def test_users_only_requires_base_role(audience):
    assert _emails(messaging_service.target_users("UsersOnly")) == {"bronze@example.com", "gold@example.com"}


def test_tier_target(audience):
    assert _emails(messaging_service.target_users("gold")) == {"gold@example.com"}
    assert messaging_service.target_users(TIER_SILVER) == []


def test_owner_who_is_also_customer_is_excluded(db_session, audience):
    auth_service.assign_role(audience["owner"], "User")
    db_session.commit()
    assert "boss@example.com" not in _emails(messaging_service.target_users("UsersOnly"))


def test_send_creates_one_receipt_per_recipient(db_session, audience):
    message = messaging_service.send_message(
        audience["owner"], "Gold sale", "<p>15% off</p>", category="promotion", target="Gold"
    )

    assert message.category == "Promotion"
    assert message.target_tier == "Gold"
    receipts = db_session.query(AppMessageRead).filter_by(message_id=message.id).all()
    assert [r.user_id for r in receipts] == [audience["gold"].id]


def test_send_validation(db_session, audience):
    with pytest.raises(ValidationError):
        messaging_service.send_message(audience["owner"], "", "body")
    with pytest.raises(ValidationError):
        messaging_service.send_message(audience["owner"], "Title", "body", category="Spam")


def test_inbox_filter_search_and_read_state(db_session, audience):
    bronze = audience["bronze"]
    messaging_service.send_message(audience["owner"], "Welcome aboard", "Hello", category="Welcome")
    messaging_service.send_message(audience["owner"], "Weekend promo", "Board games 10% off", category="Promotion")

    assert len(messaging_service.inbox(bronze)) == 2
    assert [r.message.title for r in messaging_service.inbox(bronze, category="promotion")] == ["Weekend promo"]
    assert len(messaging_service.inbox(bronze, search="board")) == 2
    assert [r.message.title for r in messaging_service.inbox(bronze, search="promo")] == ["Weekend promo"]
    assert messaging_service.unread_count(bronze) == 2

    receipt = messaging_service.inbox(bronze, category="Welcome")[0]
    messaging_service.mark_read(bronze, receipt.id)
    assert receipt.is_read is True
    assert receipt.read_at is not None
    assert messaging_service.unread_count(bronze) == 1

    assert messaging_service.mark_all_read(bronze) == 1
    assert messaging_service.unread_count(bronze) == 0


def test_mark_read_other_users_receipt(db_session, audience):
    messaging_service.send_message(audience["owner"], "Hi", "Hello")
    gold_receipt = messaging_service.inbox(audience["gold"])[0]

    with pytest.raises(NotFoundError):
        messaging_service.mark_read(audience["bronze"], gold_receipt.id)


def test_recipients_list(db_session, audience):
    message = messaging_service.send_message(audience["owner"], "Hi", "Hello", target="UsersOnly")
    messaging_service.mark_all_read(audience["gold"])

    rows = messaging_service.message_recipients(message.id)

    assert [r["email"] for r in rows] == ["bronze@example.com", "gold@example.com"]
    assert [r["is_read"] for r in rows] == [False, True]
    assert rows[1]["tier"] == TIER_GOLD
