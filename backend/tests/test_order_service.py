"""
Order engine tests: online checkout and POS sales.
"""

import pytest
from sqlalchemy import text

from storefront.errors import InsufficientStockError, NoItemsSelectedError, NotFoundError
from storefront.extensions import db
from storefront.models import (
    Order,
    ShopOrder,
    ShopStock,
    StockItem,
    User,
    UserSalesHistory,
    ROLE_USER,
    TIER_BRONZE,
    TIER_GOLD,
    TIER_SILVER,
)
from storefront.services import (
    cart_service,
    inventory_service,
    order_service,
    sales_history_service,
    tier_service,
    transfer_service,
)


def _shop_stock(db_session, shop, item):
    return db_session.query(ShopStock).filter_by(shop_id=shop.id, stock_item_id=item.id).one()


# =============================================================================
# ONLINE CHECKOUT
# =============================================================================


class TestCheckout:

    def test_checkout_records_order_history_and_stock(self, db_session, customer, customer_session, make_item):
        chess = make_item(title="Chess Set", price_cents=5000, cost_price_cents=3000, quantity=10)
        dice = make_item(title="Dice", price_cents=250, cost_price_cents=100, quantity=5)
        cart_service.add(customer_session, chess.id)
        cart_service.add(customer_session, chess.id)
        cart_service.add(customer_session, dice.id)

        result = order_service.checkout(customer_session, customer)

        order = db_session.get(Order, result["order"]["id"])
        assert order.total_cents == 10_250
        assert order.total_cents == sum(l.unit_price_cents * l.quantity for l in order.items)
        assert result["profit_cents"] == 4_150
        assert db_session.get(StockItem, chess.id).quantity == 8
        assert db_session.get(StockItem, dice.id).quantity == 4

        history = db_session.query(UserSalesHistory).filter_by(user_id=customer.id).one()
        assert history.order_id == order.id
        assert history.shop_order_id is None
        assert history.total_spent_cents == 10_250
        assert history.total_profit_cents == 4_150

        assert cart_service.count(customer_session) == 0

    def test_confirmation_includes_display_tax(self, db_session, customer, customer_session, make_item):
        item = make_item(price_cents=5000, quantity=2)
        cart_service.add(customer_session, item.id)

        result = order_service.checkout(customer_session, customer)

        assert result["summary"]["tax_cents"] == 500
        assert result["summary"]["total_with_tax"] == "55.00"
        assert result["order"]["total_cents"] == 5000

    def test_checkout_updates_tier(self, db_session, customer, customer_session, make_item):
        item = make_item(price_cents=150_000, cost_price_cents=0, quantity=5)
        cart_service.add(customer_session, item.id)
        cart_service.add(customer_session, item.id)

        result = order_service.checkout(customer_session, customer)

        assert result["tier"] == TIER_SILVER
        assert db_session.get(User, customer.id).tier == TIER_SILVER

    def test_empty_cart(self, db_session, customer, customer_session):
        with pytest.raises(NoItemsSelectedError):
            order_service.checkout(customer_session, customer)
        assert db_session.query(Order).count() == 0

    def test_short_item_aborts_everything(self, db_session, customer, customer_session, make_item):
        chess = make_item(title="Chess Set", quantity=10)
        dice = make_item(title="Dice", quantity=3)
        cart_service.add(customer_session, chess.id)
        for _ in range(3):
            cart_service.add(customer_session, dice.id)

        inventory_service.update_item(dice.id, {"quantity": 2})

        with pytest.raises(InsufficientStockError) as exc:
            order_service.checkout(customer_session, customer)

        assert "Dice" in exc.value.message
        assert db_session.get(StockItem, chess.id).quantity == 10
        assert db_session.get(StockItem, dice.id).quantity == 2
        assert db_session.query(Order).count() == 0
        assert db_session.query(UserSalesHistory).count() == 0
        assert cart_service.count(customer_session) == 4

    def test_deleted_item_aborts(self, db_session, customer, customer_session, make_item):
        item = make_item(quantity=3)
        cart_service.add(customer_session, item.id)
        inventory_service.delete_item(item.id)

        with pytest.raises(NotFoundError):
            order_service.checkout(customer_session, customer)
        assert cart_service.count(customer_session) == 1

    def test_stock_sold_elsewhere_after_validation(self, db_session, customer, customer_session, make_item, monkeypatch):
        item = make_item(title="Chess Set", quantity=10)
        cart_service.add(customer_session, item.id)
        cart_service.add(customer_session, item.id)

        real_take_units = order_service.take_units

        def take_after_concurrent_sale(model, row_id, quantity, label):
            with db.engine.begin() as conn:
                conn.execute(text("UPDATE stock_items SET quantity = 1 WHERE id = :id"), {"id": row_id})
            return real_take_units(model, row_id, quantity, label)

        monkeypatch.setattr(order_service, "take_units", take_after_concurrent_sale)

        with pytest.raises(InsufficientStockError) as exc:
            order_service.checkout(customer_session, customer)

        assert exc.value.details["available"] == 1
        assert db_session.get(StockItem, item.id).quantity == 1
        assert db_session.query(Order).count() == 0
        assert db_session.query(UserSalesHistory).count() == 0
        assert cart_service.count(customer_session) == 2

    def test_uses_current_owner_price(self, db_session, customer, customer_session, make_item):
        item = make_item(price_cents=5000, quantity=3)
        cart_service.add(customer_session, item.id)
        inventory_service.update_item(item.id, {"price_cents": 4200})

        result = order_service.checkout(customer_session, customer)

        assert result["order"]["total_cents"] == 4200
        assert result["order"]["items"][0]["unit_price_cents"] == 4200

    def test_get_order_scoped_to_user(self, db_session, customer, customer_session, make_item, make_user):
        item = make_item(quantity=3)
        cart_service.add(customer_session, item.id)
        order_id = order_service.checkout(customer_session, customer)["order"]["id"]
        stranger = make_user("stranger@example.com")

        assert order_service.get_order(order_id, user=customer).id == order_id
        with pytest.raises(NotFoundError):
            order_service.get_order(order_id, user=stranger)


# =============================================================================
# POS
# =============================================================================


class TestPosSale:

    def test_transfer_then_sell_scenario(self, db_session, make_item, shop, owner, proprietor):
        item = make_item(price_cents=5000, cost_price_cents=3000, quantity=10)

        transfer_service.transfer(shop.id, item.id, 4, performed_by_user_id=owner.id)
        assert db_session.get(StockItem, item.id).quantity == 6
        assert _shop_stock(db_session, shop, item).quantity == 4

        result = order_service.process_pos_sale(shop, {str(item.id): 3}, performed_by=proprietor)

        assert _shop_stock(db_session, shop, item).quantity == 1
        assert db_session.get(StockItem, item.id).quantity == 6
        assert result.profit_cents == 6000
        assert result.shop_order.total_cents == 15_000
        assert result.shop_order.customer_user_id is None
        assert len(result.warnings) == 1
        assert "Low stock" in result.warnings[0]
        assert db_session.query(UserSalesHistory).count() == 0

    def test_silver_customer_gets_five_percent(self, db_session, make_item, shop, customer):
        sales_history_service.record_purchase(customer.id, 500_000, 210_000)
        tier_service.recompute_tier(customer.id)
        db_session.commit()
        assert order_service.lookup_customer_tier(customer.email)["discount_percent"] == 5

        item = make_item(price_cents=5000, cost_price_cents=3000, quantity=10)
        transfer_service.transfer(shop.id, item.id, 5)

        result = order_service.process_pos_sale(shop, {item.id: 2}, customer_identifier=customer.email)

        assert result.shop_order.subtotal_cents == 10_000
        assert result.shop_order.discount_cents == 500
        assert result.shop_order.total_cents == 9_500
        assert result.shop_order.tier_applied == TIER_SILVER
        assert result.shop_order.items[0].unit_price_cents == 5000

        history = db_session.query(UserSalesHistory).filter_by(shop_order_id=result.shop_order.id).one()
        assert history.total_spent_cents == 9_500
        assert history.total_profit_cents == 4_000

    def test_sale_recomputes_customer_tier(self, db_session, make_item, shop, customer):
        item = make_item(price_cents=300_000, cost_price_cents=0, quantity=5)
        transfer_service.transfer(shop.id, item.id, 5)

        order_service.process_pos_sale(shop, {item.id: 2}, customer_identifier=customer.email)

        assert db_session.get(User, customer.id).tier == TIER_GOLD

    def test_discount_uses_tier_before_sale(self, db_session, make_item, shop, customer):
        item = make_item(price_cents=300_000, cost_price_cents=0, quantity=5)
        transfer_service.transfer(shop.id, item.id, 5)

        result = order_service.process_pos_sale(shop, {item.id: 1}, customer_identifier=customer.email)

        assert result.shop_order.tier_applied == TIER_BRONZE
        assert result.shop_order.discount_cents == 0

    def test_price_override_used(self, db_session, make_item, shop):
        item = make_item(price_cents=5000, quantity=5)
        transfer_service.transfer(shop.id, item.id, 5)
        row = _shop_stock(db_session, shop, item)
        transfer_service.set_price_override(shop.id, row.id, 4000)

        result = order_service.process_pos_sale(shop, {item.id: 1})

        assert result.shop_order.total_cents == 4000
        assert result.profit_cents == 1000

    def test_missing_row_is_skipped(self, db_session, make_item, shop):
        stocked = make_item(title="Stocked", quantity=5)
        unstocked = make_item(title="Unstocked", quantity=5)
        transfer_service.transfer(shop.id, stocked.id, 5)

        result = order_service.process_pos_sale(shop, {stocked.id: 1, unstocked.id: 1, 77: 0})

        assert result.skipped_item_ids == [unstocked.id]
        assert len(result.shop_order.items) == 1
        assert db_session.get(StockItem, unstocked.id).quantity == 5

    def test_nothing_valid_raises(self, db_session, make_item, shop):
        unstocked = make_item(quantity=5)
        with pytest.raises(NoItemsSelectedError):
            order_service.process_pos_sale(shop, {unstocked.id: 2})
        with pytest.raises(NoItemsSelectedError):
            order_service.process_pos_sale(shop, {unstocked.id: 0})
        assert db_session.query(ShopOrder).count() == 0

    def test_insufficient_shop_stock_aborts_sale(self, db_session, make_item, shop):
        a = make_item(title="A", quantity=10)
        b = make_item(title="B", quantity=10)
        transfer_service.transfer(shop.id, a.id, 5)
        transfer_service.transfer(shop.id, b.id, 1)

        with pytest.raises(InsufficientStockError):
            order_service.process_pos_sale(shop, {a.id: 2, b.id: 2})

        assert _shop_stock(db_session, shop, a).quantity == 5
        assert _shop_stock(db_session, shop, b).quantity == 1
        assert db_session.query(ShopOrder).count() == 0

    def test_shop_quantity_decreases_by_sold_amount(self, db_session, make_item, shop):
        item = make_item(quantity=20)
        transfer_service.transfer(shop.id, item.id, 12)

        result = order_service.process_pos_sale(shop, {item.id: 5})

        assert _shop_stock(db_session, shop, item).quantity == 7
        assert result.warnings == []

    def test_guest_signup_by_phone(self, db_session, make_item, shop):
        item = make_item(quantity=5)
        transfer_service.transfer(shop.id, item.id, 5)

        result = order_service.process_pos_sale(
            shop, {item.id: 1}, customer_identifier="0412345678", signup_new=True
        )

        guest = db_session.query(User).filter_by(email="0412345678@guest.local").one()
        assert guest.is_guest is True
        assert guest.has_role(ROLE_USER)
        assert result.shop_order.customer_user_id == guest.id
        assert result.shop_order.customer_phone == "0412345678"
        assert db_session.query(UserSalesHistory).filter_by(user_id=guest.id).count() == 1

        again = order_service.process_pos_sale(shop, {item.id: 1}, customer_identifier="0412345678")
        assert again.shop_order.customer_user_id == guest.id

    def test_unknown_customer_without_signup(self, db_session, make_item, shop):
        item = make_item(quantity=5)
        transfer_service.transfer(shop.id, item.id, 5)

        result = order_service.process_pos_sale(shop, {item.id: 1}, customer_identifier="walkin@example.com")

        assert result.customer is None
        assert db_session.query(User).filter_by(email="walkin@example.com").count() == 0
        assert db_session.query(UserSalesHistory).count() == 0


def test_lookup_customer_tier(db_session, make_user):
    make_user("gold@example.com", tier=TIER_GOLD)

    found = order_service.lookup_customer_tier("GOLD@example.com")
    assert found["found"] is True
    assert found["tier"] == TIER_GOLD
    assert found["discount_percent"] == 10

    assert order_service.lookup_customer_tier("nobody@example.com")["found"] is False
    assert order_service.lookup_customer_tier("")["found"] is False


def test_receipt_scoped_to_shop(db_session, make_item, make_shop, shop, customer):
    other = make_shop("Shop B")
    item = make_item(quantity=5)
    transfer_service.transfer(shop.id, item.id, 5)
    result = order_service.process_pos_sale(shop, {item.id: 1}, customer_identifier=customer.email)

    receipt = order_service.get_receipt(result.shop_order.id, shop=shop)
    assert receipt["customer_email"] == customer.email
    assert receipt["shop"]["id"] == shop.id

    with pytest.raises(NotFoundError):
        order_service.get_receipt(result.shop_order.id, shop=other)
