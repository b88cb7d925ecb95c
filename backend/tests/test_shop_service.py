"""
Shop management and proprietor assignment tests.
"""

import pytest

from storefront.errors import ConflictError, NotFoundError, ValidationError
from storefront.models import Shop, ShopStock, ROLE_OWNER, ROLE_PROPRIETOR
from storefront.services import auth_service, shop_service, transfer_service


class TestShopRecords:
    def test_create_requires_all_fields(self, db_session):
        with pytest.raises(ValidationError):
            shop_service.create_shop({"name": "Shop B", "address": "2 High St"})

    def test_create_update_delete(self, db_session, make_item):
        shop = shop_service.create_shop({"name": "Shop B", "address": "2 High St", "phone": "0411111111"})
        assert shop.proprietor_email is None

        shop_service.update_shop(shop.id, {"phone": "0422222222"})
        assert shop_service.get_shop(shop.id).phone == "0422222222"

        item = make_item(quantity=5)
        transfer_service.transfer(shop.id, item.id, 2)

        shop_service.delete_shop(shop.id)

        assert db_session.get(Shop, shop.id) is None
        assert db_session.query(ShopStock).count() == 0
        with pytest.raises(NotFoundError):
            shop_service.get_shop(shop.id)

    def test_list_unassigned(self, db_session, make_shop, proprietor):
        make_shop("Zeta", proprietor=proprietor)
        make_shop("Alpha")

        assert [s.name for s in shop_service.list_shops()] == ["Alpha", "Zeta"]
        assert [s.name for s in shop_service.list_shops(unassigned_only=True)] == ["Alpha"]


class TestAssignProprietor:
    def test_creates_account(self, db_session, make_shop):
        shop = make_shop("Shop B")

        shop_service.assign_proprietor(shop.id, "New.Keeper@Example.com", "Keeper123!")

        user = auth_service.find_user_by_login("new.keeper@example.com")
        assert user.has_role(ROLE_PROPRIETOR)
        assert shop.proprietor_user_id == user.id
        assert shop.proprietor_email == "new.keeper@example.com"
        assert auth_service.authenticate("new.keeper@example.com", "Keeper123!") is not None

    def test_reuses_existing_account(self, db_session, make_shop, make_user):
        existing = make_user("manager@example.com", role=ROLE_OWNER)
        shop = make_shop("Shop B")

        shop_service.assign_proprietor(shop.id, "manager@example.com", "Ignored123!")

        assert shop.proprietor_user_id == existing.id
        assert existing.has_role(ROLE_OWNER, ROLE_PROPRIETOR)
        assert ROLE_PROPRIETOR in existing.role_names

    def test_shop_already_assigned(self, db_session, shop):
        with pytest.raises(ConflictError):
            shop_service.assign_proprietor(shop.id, "another@example.com", "Another123!")

    def test_one_shop_per_proprietor(self, db_session, shop, proprietor, make_shop):
        second = make_shop("Shop B")

        with pytest.raises(ConflictError):
            shop_service.assign_proprietor(second.id, proprietor.email, "Password123!")
        assert db_session.get(Shop, second.id).proprietor_user_id is None

    def test_missing_fields(self, db_session, make_shop):
        shop = make_shop("Shop B")
        with pytest.raises(ValidationError):
            shop_service.assign_proprietor(shop.id, "", "Keeper123!")


class TestProprietorShop:
    def test_shop_for_proprietor(self, db_session, shop, proprietor):
        assert shop_service.shop_for_proprietor(proprietor).id == shop.id

    def test_no_shop(self, db_session, customer):
        with pytest.raises(NotFoundError):
            shop_service.shop_for_proprietor(customer)

    def test_resolve_shop_pins_proprietor(self, db_session, shop, proprietor, owner, make_shop):
        other = make_shop("Shop B")

        assert shop_service.resolve_shop(proprietor, other.id).id == shop.id
        assert shop_service.resolve_shop(owner, other.id).id == other.id

    def test_dashboard(self, db_session, shop, make_item):
        chess = make_item(title="Chess Set", quantity=10)
        cards = make_item(title="Card Deck", quantity=10)
        transfer_service.transfer(shop.id, chess.id, 3)
        transfer_service.transfer(shop.id, cards.id, 4)

        data = shop_service.dashboard(shop)

        assert data["shop"]["id"] == shop.id
        assert [s["title"] for s in data["stocks"]] == ["Card Deck", "Chess Set"]
        assert data["line_count"] == 2
        assert data["total_units"] == 7
