"""Tests for order creation and status transitions."""

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

import orders
from conftest import make_product, stock_of
from errors import ConflictError, InsufficientStockError, NotFoundError, ProductNotFoundError, ValidationError
from inventory import LOW_STOCK, Inventory
from schemas import OrderCreate


def order_body(*lines, **extra):
    data = {
        "customer": {"name": "Grace Hopper", "email": "grace@navy.io"},
        "items": [{"product": str(pid), "quantity": qty} for pid, qty in lines],
    }
    data.update(extra)
    return OrderCreate(**data)


class TestCreateOrder:
    def test_creates_order_with_snapshot_and_total(self, db, category):
        a = make_product(db, category, "Trail Runner", stock=20, price=59.99)
        b = make_product(db, category, "Sock Pack", stock=8, price=4.5)

        order = orders.create_order(db, order_body((a, 2), (b, 3)))

        assert order["order_number"] == "#ORD-12345"
        assert order["status"] == "Processing"
        assert order["payment_status"] == "Pending"
        assert order["payment_method"] == "Cash on Delivery"
        assert order["total_amount"] == pytest.approx(133.48)
        assert order["items"][0] == {"product": a, "name": "Trail Runner", "price": 59.99, "quantity": 2}
        assert order["customer"]["email"] == "grace@navy.io"
        assert stock_of(db, a) == 18
        assert stock_of(db, b) == 5
        assert db["products"].find_one({"_id": b})["status"] == LOW_STOCK

    def test_order_numbers_increase(self, db, category):
        a = make_product(db, category, "Trail Runner", stock=20)
        first = orders.create_order(db, order_body((a, 1)))
        second = orders.create_order(db, order_body((a, 1)))
        assert (first["order_number"], second["order_number"]) == ("#ORD-12345", "#ORD-12346")

    def test_later_price_change_does_not_touch_total(self, db, category):
        a = make_product(db, category, "Trail Runner", stock=20, price=10.0)
        order = orders.create_order(db, order_body((a, 2)))
        db["products"].update_one({"_id": a}, {"$set": {"price": 99.0}})

        stored = orders.get_order(db, str(order["_id"]))
        assert stored["total_amount"] == 20.0
        assert stored["items"][0]["price"] == 10.0

    def test_insufficient_stock_leaves_everything_untouched(self, db, category):
        a = make_product(db, category, "Product A", stock=5)
        b = make_product(db, category, "Product B", stock=3)

        with pytest.raises(InsufficientStockError) as exc:
            orders.create_order(db, order_body((a, 2), (b, 100)))

        assert "Product B" in str(exc.value)
        assert stock_of(db, a) == 5
        assert stock_of(db, b) == 3
        assert db["orders"].count_documents({}) == 0

    def test_missing_product_names_the_id(self, db, category):
        a = make_product(db, category, "Product A", stock=5)
        missing = ObjectId()
        with pytest.raises(ProductNotFoundError) as exc:
            orders.create_order(db, order_body((a, 1), (missing, 1)))
        assert str(missing) in str(exc.value)
        assert stock_of(db, a) == 5
        assert db["orders"].count_documents({}) == 0

    def test_failed_insert_releases_stock(self, db, category):
        a = make_product(db, category, "Product A", stock=5)
        # occupy the number the counter will hand out next
        db["orders"].insert_one({"order_number": "#ORD-12346"})
        db["counters"].insert_one({"_id": "orders", "seq": 1})

        with pytest.raises(DuplicateKeyError):
            orders.create_order(db, order_body((a, 2)))
        assert stock_of(db, a) == 5

    def test_failed_insert_releases_remaining_lines_when_one_release_fails(self, db, category, monkeypatch):
        a = make_product(db, category, "Product A", stock=5)
        b = make_product(db, category, "Product B", stock=5)
        db["orders"].insert_one({"order_number": "#ORD-12346"})
        db["counters"].insert_one({"_id": "orders", "seq": 1})

        real_release = Inventory.release

        def release(self, product_id, quantity):
            if product_id == str(b):
                raise ConflictError("stock busy")
            return real_release(self, product_id, quantity)

        monkeypatch.setattr(Inventory, "release", release)
        with pytest.raises(DuplicateKeyError):
            orders.create_order(db, order_body((a, 2), (b, 2)))
        assert stock_of(db, a) == 5
        assert stock_of(db, b) == 3
        assert db["orders"].count_documents({}) == 1

    def test_empty_items_rejected(self, db):
        body = OrderCreate.model_construct(customer=None, items=[], shipping_address=None, payment_method="", notes=None)
        with pytest.raises(ValidationError):
            orders.create_order(db, body)


@pytest.fixture
def placed(db, category):
    """An order for 3 units of a product left with stock 7."""
    pid = make_product(db, category, "Product X", stock=10)
    order = orders.create_order(db, order_body((pid, 3)))
    assert stock_of(db, pid) == 7
    return pid, str(order["_id"])


class TestStatusTransitions:
    def test_cancel_restores_stock(self, db, placed):
        pid, order_id = placed
        order = orders.update_order_status(db, order_id, status="Cancelled")
        assert order["status"] == "Cancelled"
        assert stock_of(db, pid) == 10

    def test_uncancel_takes_stock_again(self, db, placed):
        pid, order_id = placed
        orders.update_order_status(db, order_id, status="Cancelled")
        order = orders.update_order_status(db, order_id, status="Processing")
        assert order["status"] == "Processing"
        assert stock_of(db, pid) == 7

    def test_same_status_has_no_stock_effect(self, db, placed):
        pid, order_id = placed
        orders.update_order_status(db, order_id, status="Completed")
        orders.update_order_status(db, order_id, status="Completed")
        assert stock_of(db, pid) == 7

    def test_cancelling_twice_releases_once(self, db, placed):
        pid, order_id = placed
        orders.update_order_status(db, order_id, status="Cancelled")
        orders.update_order_status(db, order_id, status="Cancelled")
        assert stock_of(db, pid) == 10

    @pytest.mark.parametrize("path", [["Completed"], ["On Hold", "Completed"], ["Completed", "Processing"]])
    def test_non_cancel_transitions_leave_stock(self, db, placed, path):
        pid, order_id = placed
        for status in path:
            orders.update_order_status(db, order_id, status=status)
        assert stock_of(db, pid) == 7

    def test_uncancel_without_stock_keeps_order_cancelled(self, db, placed):
        pid, order_id = placed
        orders.update_order_status(db, order_id, status="Cancelled")
        db["products"].update_one({"_id": pid}, {"$set": {"stock": 1}})

        with pytest.raises(InsufficientStockError):
            orders.update_order_status(db, order_id, status="Completed")

        assert orders.get_order(db, order_id)["status"] == "Cancelled"
        assert stock_of(db, pid) == 1

    def test_cancel_with_deleted_product_still_succeeds(self, db, placed):
        pid, order_id = placed
        db["products"].delete_one({"_id": pid})
        order = orders.update_order_status(db, order_id, status="Cancelled")
        assert order["status"] == "Cancelled"

    def test_payment_status_is_independent(self, db, placed):
        pid, order_id = placed
        order = orders.update_order_status(db, order_id, payment_status="Paid")
        assert order["payment_status"] == "Paid"
        assert order["status"] == "Processing"
        assert stock_of(db, pid) == 7

    def test_lost_status_race_is_reported(self, db, placed, monkeypatch):
        pid, order_id = placed
        real_get = orders.get_order

        def stale_get(db_, oid):
            order = real_get(db_, oid)
            # another request changes the status between our read and our write
            db_["orders"].update_one({"_id": order["_id"]}, {"$set": {"status": "On Hold"}})
            return order

        monkeypatch.setattr(orders, "get_order", stale_get)
        with pytest.raises(ConflictError):
            orders.update_order_status(db, order_id, status="Cancelled")
        assert stock_of(db, pid) == 7

    def test_invalid_status(self, db, placed):
        _, order_id = placed
        with pytest.raises(ValidationError):
            orders.update_order_status(db, order_id, status="Shipped")

    def test_unknown_order(self, db):
        with pytest.raises(NotFoundError):
            orders.update_order_status(db, str(ObjectId()), status="Cancelled")


class TestListOrders:
    def test_filter_and_search(self, db, category):
        pid = make_product(db, category, "Product X", stock=50)
        orders.create_order(db, order_body((pid, 1)))
        other = orders.create_order(db, OrderCreate(
            customer={"name": "Alan Turing", "email": "alan@bletchley.io"},
            items=[{"product": str(pid), "quantity": 1}],
        ))
        orders.update_order_status(db, str(other["_id"]), status="Completed")

        assert len(orders.list_orders(db)) == 2
        assert [o["customer"]["name"] for o in orders.list_orders(db, status="Completed")] == ["Alan Turing"]
        assert [o["customer"]["name"] for o in orders.list_orders(db, search="GRACE")] == ["Grace Hopper"]
        assert [o["order_number"] for o in orders.list_orders(db, search="12346")] == ["#ORD-12346"]
        assert orders.list_orders(db, search="bletchley")[0]["status"] == "Completed"
