"""CartService: line mutations, totals, coupons, guest merge."""

from decimal import Decimal

import pytest
from sqlalchemy import update

from app.data.models import CartModel
from app.domain.errors import (
    CartConflict,
    CouponInvalid,
    NotFound,
    OutOfStock,
    ProductUnavailable,
    ValidationError,
)
from app.domain.owner import SessionOwner, UserOwner
from app.domain.statuses import CouponType
from app.services.cart_service import CartService
from app.services.coupon_service import CouponEngine


def assert_totals_consistent(cart: dict):
    assert cart["total"] == cart["subtotal"] - cart["discount_amount"] + cart["tax_amount"]
    assert cart["subtotal"] == sum((i["subtotal"] for i in cart["items"]), Decimal("0.00"))


class TestGetOrCreate:
    def test_creates_cart_lazily_for_guest(self, carts):
        cart = carts.get_cart(SessionOwner("sess-1"))

        assert cart["session_id"] == "sess-1"
        assert cart["user_id"] is None
        assert cart["items"] == []
        assert cart["total"] == Decimal("0.00")

    def test_returns_same_cart(self, carts):
        first = carts.get_or_create(UserOwner(1))
        second = carts.get_or_create(UserOwner(1))

        assert first.id == second.id

    def test_concurrent_creation_returns_existing_cart(self, carts, monkeypatch):
        existing_id = carts.get_or_create(UserOwner(7)).id
        real_lookup = carts.repo.get_cart_by_owner
        calls = []

        def lookup(owner):
            # pierwszy odczyt nie widzi koszyka utworzonego rownolegle
            calls.append(owner)
            return None if len(calls) == 1 else real_lookup(owner)

        monkeypatch.setattr(carts.repo, "get_cart_by_owner", lookup)

        cart = carts.get_or_create(UserOwner(7))

        assert cart.id == existing_id


class TestAddItem:
    def test_add_new_line(self, carts, make_product):
        product = make_product(price="1000.00")

        cart = carts.add_item(UserOwner(1), product.id, 2)

        assert len(cart["items"]) == 1
        assert cart["items"][0]["subtotal"] == Decimal("2000.00")
        assert cart["subtotal"] == Decimal("2000.00")
        assert cart["items_count"] == 2

    def test_same_product_and_options_merges_line(self, carts, make_product):
        product = make_product(price="1000.00")
        owner = UserOwner(1)

        carts.add_item(owner, product.id, 1, {"size": "M"})
        cart = carts.add_item(owner, product.id, 2, {"size": "M"})

        assert len(cart["items"]) == 1
        assert cart["items"][0]["quantity"] == 3

    def test_different_options_make_new_line(self, carts, make_product):
        product = make_product(price="1000.00")
        owner = UserOwner(1)

        carts.add_item(owner, product.id, 1, {"size": "M"})
        cart = carts.add_item(owner, product.id, 1, {"size": "L"})

        assert len(cart["items"]) == 2

    def test_price_is_snapshot(self, db, carts, make_product):
        product = make_product(price="1000.00")
        owner = UserOwner(1)
        carts.add_item(owner, product.id, 1)

        product.price = Decimal("1500.00")
        db.commit()
        cart = carts.recalculate(owner)

        assert cart["items"][0]["price"] == Decimal("1000.00")

    def test_unknown_product(self, carts):
        with pytest.raises(NotFound):
            carts.add_item(UserOwner(1), 404, 1)

    def test_inactive_product(self, carts, make_product):
        product = make_product(is_active=False)

        with pytest.raises(ProductUnavailable):
            carts.add_item(UserOwner(1), product.id, 1)

    def test_more_than_stock(self, carts, make_product):
        product = make_product(stock=2)
        owner = UserOwner(1)
        carts.add_item(owner, product.id, 2)

        with pytest.raises(OutOfStock) as exc:
            carts.add_item(owner, product.id, 1)
        assert exc.value.available == 2

    def test_backorder_product_accepts_any_quantity(self, carts, make_product):
        product = make_product(stock=0, allow_backorders=True)

        cart = carts.add_item(UserOwner(1), product.id, 5)

        assert cart["items"][0]["quantity"] == 5

    def test_zero_quantity_rejected(self, carts, make_product):
        product = make_product()

        with pytest.raises(ValidationError):
            carts.add_item(UserOwner(1), product.id, 0)


class TestUpdateAndRemove:
    def test_update_quantity(self, carts, make_product):
        product = make_product(price="250.00")
        owner = UserOwner(1)
        item_id = carts.add_item(owner, product.id, 1)["items"][0]["id"]

        cart = carts.update_quantity(owner, item_id, 4)

        assert cart["items"][0]["subtotal"] == Decimal("1000.00")
        assert cart["total"] == Decimal("1000.00")

    def test_zero_quantity_removes_line(self, carts, make_product):
        product = make_product()
        owner = UserOwner(1)
        item_id = carts.add_item(owner, product.id, 1)["items"][0]["id"]

        cart = carts.update_quantity(owner, item_id, 0)

        assert cart["items"] == []
        assert cart["total"] == Decimal("0.00")

    def test_deactivated_product_quantity_cannot_grow(self, db, carts, make_product):
        product = make_product()
        owner = UserOwner(1)
        item_id = carts.add_item(owner, product.id, 1)["items"][0]["id"]
        product.is_active = False
        db.commit()

        with pytest.raises(ProductUnavailable):
            carts.update_quantity(owner, item_id, 3)

    def test_cannot_touch_other_cart_item(self, carts, make_product):
        product = make_product()
        item_id = carts.add_item(UserOwner(1), product.id, 1)["items"][0]["id"]

        with pytest.raises(NotFound):
            carts.remove_item(UserOwner(2), item_id)

    def test_clear_resets_totals_and_coupon(self, carts, make_product, make_coupon):
        product = make_product(price="1000.00")
        make_coupon()
        owner = UserOwner(1)
        carts.add_item(owner, product.id, 2)
        carts.apply_coupon(owner, "SAVE10")

        cart = carts.clear(owner)

        assert cart["items"] == []
        assert cart["coupon_code"] is None
        assert cart["discount_amount"] == Decimal("0.00")
        assert cart["total"] == Decimal("0.00")


class TestCoupons:
    def test_apply_coupon(self, carts, make_product, make_coupon):
        product = make_product(price="1000.00")
        make_coupon()
        owner = UserOwner(1)
        carts.add_item(owner, product.id, 3)

        cart = carts.apply_coupon(owner, "save10")

        assert cart["coupon_code"] == "SAVE10"
        assert cart["discount_amount"] == Decimal("300.00")
        assert cart["total"] == Decimal("2700.00")

    def test_apply_unknown_coupon(self, carts, make_product):
        product = make_product()
        owner = UserOwner(1)
        carts.add_item(owner, product.id, 1)

        with pytest.raises(CouponInvalid) as exc:
            carts.apply_coupon(owner, "NOPE")
        assert exc.value.reason == "Invalid coupon code."

    def test_apply_to_empty_cart(self, carts, make_coupon):
        make_coupon()

        with pytest.raises(ValidationError):
            carts.apply_coupon(UserOwner(1), "SAVE10")

    def test_coupon_dropped_when_subtotal_falls_below_minimum(self, carts, make_product, make_coupon):
        product = make_product(price="1000.00")
        make_coupon(code="BIG", type=CouponType.FIXED, value="500", minimum_order_amount=Decimal("3000"))
        owner = UserOwner(1)
        item_id = carts.add_item(owner, product.id, 3)["items"][0]["id"]
        carts.apply_coupon(owner, "BIG")

        cart = carts.update_quantity(owner, item_id, 2)

        assert cart["coupon_code"] is None
        assert cart["discount_amount"] == Decimal("0.00")
        assert cart["total"] == Decimal("2000.00")

    def test_remove_coupon(self, carts, make_product, make_coupon):
        product = make_product(price="1000.00")
        make_coupon()
        owner = UserOwner(1)
        carts.add_item(owner, product.id, 1)
        carts.apply_coupon(owner, "SAVE10")

        cart = carts.remove_coupon(owner)

        assert cart["coupon_code"] is None
        assert cart["total"] == Decimal("1000.00")


class TestTotalsInvariant:
    def test_total_identity_after_every_mutation(self, db, lock, make_product, make_coupon):
        carts = CartService(db, coupon_engine=CouponEngine(db), lock_service=lock, tax_rate=Decimal("0.075"))
        a = make_product(price="1234.56", stock=50)
        b = make_product(price="99.99", stock=50)
        make_coupon(code="TAKE15", value="15", maximum_discount_amount=Decimal("400"))
        owner = SessionOwner("sess-totals")

        cart = carts.add_item(owner, a.id, 3)
        assert_totals_consistent(cart)
        cart = carts.add_item(owner, b.id, 7)
        assert_totals_consistent(cart)
        cart = carts.apply_coupon(owner, "TAKE15")
        assert_totals_consistent(cart)
        assert cart["discount_amount"] == Decimal("400.00")
        line_b = next(i for i in cart["items"] if i["product_id"] == b.id)
        cart = carts.update_quantity(owner, line_b["id"], 1)
        assert_totals_consistent(cart)
        line_a = next(i for i in cart["items"] if i["product_id"] == a.id)
        cart = carts.remove_item(owner, line_a["id"])
        assert_totals_consistent(cart)
        assert cart["tax_amount"] == Decimal("6.37")
        cart = carts.clear(owner)
        assert_totals_consistent(cart)


class TestMerge:
    def test_guest_lines_move_to_user(self, carts, make_product, lock):
        a = make_product(price="1000.00")
        b = make_product(price="500.00")
        carts.add_item(SessionOwner("sess-1"), a.id, 1)
        carts.add_item(SessionOwner("sess-1"), b.id, 2)
        carts.add_item(UserOwner(9), a.id, 2)

        cart = carts.merge_guest_into_user("sess-1", 9)

        quantities = {i["product_id"]: i["quantity"] for i in cart["items"]}
        assert quantities == {a.id: 3, b.id: 2}
        assert cart["subtotal"] == Decimal("4000.00")
        assert carts.repo.get_cart_by_owner(SessionOwner("sess-1")) is None
        assert lock.held == {}

    def test_failed_merge_can_be_retried(self, carts, make_product, monkeypatch):
        product = make_product(price="1000.00")
        carts.add_item(SessionOwner("sess-4"), product.id, 2)
        carts.add_item(UserOwner(9), product.id, 1)

        def broken_delete(cart):
            raise RuntimeError("connection lost")

        monkeypatch.setattr(carts.repo, "delete_cart", broken_delete)
        with pytest.raises(RuntimeError):
            carts.merge_guest_into_user("sess-4", 9)
        monkeypatch.undo()

        assert carts.get_cart(UserOwner(9))["items"][0]["quantity"] == 1
        assert carts.repo.get_cart_by_owner(SessionOwner("sess-4")) is not None

        cart = carts.merge_guest_into_user("sess-4", 9)

        assert cart["items"][0]["quantity"] == 3
        assert cart["subtotal"] == Decimal("3000.00")
        assert carts.repo.get_cart_by_owner(SessionOwner("sess-4")) is None

    def test_guest_coupon_carries_over(self, carts, make_product, make_coupon):
        product = make_product(price="1000.00")
        make_coupon()
        carts.add_item(SessionOwner("sess-2"), product.id, 1)
        carts.apply_coupon(SessionOwner("sess-2"), "SAVE10")

        cart = carts.merge_guest_into_user("sess-2", 4)

        assert cart["coupon_code"] == "SAVE10"
        assert cart["discount_amount"] == Decimal("100.00")

    def test_no_guest_cart_returns_user_cart(self, carts):
        cart = carts.merge_guest_into_user("missing", 4)

        assert cart["user_id"] == 4

    def test_concurrent_merge_is_rejected(self, carts, make_product, lock):
        product = make_product()
        carts.add_item(SessionOwner("sess-3"), product.id, 1)
        lock.held["cart:merge:sess-3"] = "other-worker"

        with pytest.raises(CartConflict):
            carts.merge_guest_into_user("sess-3", 4)

        assert carts.repo.get_cart_by_owner(SessionOwner("sess-3")) is not None


class TestOptimisticLocking:
    def test_stale_version_raises_conflict(self, db, carts, make_product):
        product = make_product()
        owner = UserOwner(1)
        cart = carts.get_or_create(owner)
        db.execute(
            update(CartModel)
            .where(CartModel.id == cart.id)
            .values(version=CartModel.version + 1)
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(CartConflict):
            carts.add_item(owner, product.id, 1)

        assert carts.get_cart(owner)["items"] == []
