from decimal import Decimal

import pytest

from campus_orders.data.models import OrderModel
from campus_orders.domain.errors import InvalidSelection, InvalidTransition, NotFound, QuantityError, ValidationError
from conftest import CUSTOMER, OTHER_CUSTOMER


def assert_totals_consistent(cart):
    grand = Decimal("0.00")
    for entry in cart["concessions"]:
        order = entry["order"]
        lines = Decimal("0.00")
        for d in order["details"]:
            extras = sum((Decimal(v["price"]) for v in d["variations"]), Decimal("0.00"))
            assert Decimal(d["variation_total"]) == extras
            assert Decimal(d["total_price"]) == d["quantity"] * (Decimal(d["unit_price"]) + extras)
            lines += Decimal(d["total_price"])
        assert Decimal(order["total_price"]) == lines
        grand += lines
    assert Decimal(cart["total"]) == grand


class TestAddItem:
    def test_first_item_opens_cart_order_for_concession(self, cart_service, db):
        cart = cart_service.add_item(CUSTOMER, 1, 2, 2)

        assert len(cart["concessions"]) == 1
        entry = cart["concessions"][0]
        assert entry["concession_id"] == 1
        assert entry["concession_name"] == "Kusina ni Aling Nena"
        assert entry["order"]["status"] == "cart"
        assert entry["order"]["in_cart"] is True
        assert Decimal(entry["order"]["total_price"]) == Decimal("110.00")
        assert_totals_consistent(cart)

        order = db.get(OrderModel, entry["order"]["id"])
        assert order.concessionaire_id == 101
        assert order.receipt_grace_seconds == 15 * 60

    def test_same_item_and_selection_merges_into_one_line(self, cart_service):
        cart_service.add_item(CUSTOMER, 1, 1, 1, [10, 20])
        cart = cart_service.add_item(CUSTOMER, 1, 1, 2, [20, 10])

        details = cart["concessions"][0]["order"]["details"]
        assert len(details) == 1
        assert details[0]["quantity"] == 3
        assert Decimal(details[0]["total_price"]) == Decimal("300.00")
        assert_totals_consistent(cart)

    def test_different_selection_or_note_gets_its_own_line(self, cart_service):
        cart_service.add_item(CUSTOMER, 1, 1, 1, [10])
        cart_service.add_item(CUSTOMER, 1, 1, 1, [11])
        cart = cart_service.add_item(CUSTOMER, 1, 1, 1, [10], note="no onions")

        details = cart["concessions"][0]["order"]["details"]
        assert len(details) == 3
        assert_totals_consistent(cart)

    def test_items_from_two_concessions_make_two_orders(self, cart_service):
        cart_service.add_item(CUSTOMER, 1, 2, 1)
        cart = cart_service.add_item(CUSTOMER, 2, 3, 1, [31])

        assert [c["concession_id"] for c in cart["concessions"]] == [1, 2]
        assert Decimal(cart["total"]) == Decimal("135.00")
        assert_totals_consistent(cart)

    def test_quantity_below_one(self, cart_service):
        with pytest.raises(QuantityError):
            cart_service.add_item(CUSTOMER, 1, 2, 0)

    def test_invalid_selection_leaves_cart_untouched(self, cart_service):
        with pytest.raises(InvalidSelection):
            cart_service.add_item(CUSTOMER, 1, 1, 1, [20])

        assert cart_service.get_cart(CUSTOMER)["concessions"] == []

    def test_item_from_another_concession(self, cart_service):
        with pytest.raises(InvalidSelection):
            cart_service.add_item(CUSTOMER, 2, 2, 1)

    def test_unknown_item(self, cart_service):
        with pytest.raises(NotFound):
            cart_service.add_item(CUSTOMER, 1, 999, 1)

    def test_unavailable_item(self, cart_service, catalog):
        catalog.items[2]["available"] = False
        with pytest.raises(InvalidSelection, match="not available"):
            cart_service.add_item(CUSTOMER, 1, 2, 1)


class TestEditCart:
    def test_update_quantity_recomputes_totals(self, cart_service):
        cart = cart_service.add_item(CUSTOMER, 1, 1, 1, [12, 21])
        detail_id = cart["concessions"][0]["order"]["details"][0]["id"]

        cart = cart_service.update_quantity(detail_id, 4, CUSTOMER)

        detail = cart["concessions"][0]["order"]["details"][0]
        assert detail["quantity"] == 4
        assert Decimal(detail["total_price"]) == Decimal("328.00")
        assert_totals_consistent(cart)

    def test_update_quantity_rejects_zero(self, cart_service):
        cart = cart_service.add_item(CUSTOMER, 1, 2, 1)
        detail_id = cart["concessions"][0]["order"]["details"][0]["id"]

        with pytest.raises(QuantityError):
            cart_service.update_quantity(detail_id, 0, CUSTOMER)

    def test_update_quantity_after_checkout(self, cart_service, order_service):
        cart = cart_service.add_item(CUSTOMER, 1, 2, 1)
        order = cart["concessions"][0]["order"]
        order_service.checkout_single_order(order["id"], CUSTOMER, "cash")

        with pytest.raises(NotFound):
            cart_service.update_quantity(order["details"][0]["id"], 2, CUSTOMER)

    def test_other_customer_cannot_edit(self, cart_service):
        cart = cart_service.add_item(CUSTOMER, 1, 2, 1)
        detail_id = cart["concessions"][0]["order"]["details"][0]["id"]

        with pytest.raises(PermissionError):
            cart_service.remove_item(detail_id, OTHER_CUSTOMER)

    def test_remove_one_of_two_lines(self, cart_service):
        cart_service.add_item(CUSTOMER, 1, 2, 1)
        cart = cart_service.add_item(CUSTOMER, 1, 1, 1, [10])
        details = cart["concessions"][0]["order"]["details"]

        cart = cart_service.remove_item(details[0]["id"], CUSTOMER)

        assert len(cart["concessions"][0]["order"]["details"]) == 1
        assert_totals_consistent(cart)

    def test_removing_last_line_deletes_the_order(self, cart_service, db):
        cart = cart_service.add_item(CUSTOMER, 1, 2, 1)
        order_id = cart["concessions"][0]["order"]["id"]
        detail_id = cart["concessions"][0]["order"]["details"][0]["id"]

        cart = cart_service.remove_item(detail_id, CUSTOMER)

        assert cart["concessions"] == []
        assert Decimal(cart["total"]) == Decimal("0.00")
        assert db.get(OrderModel, order_id) is None

    def test_missing_detail(self, cart_service):
        with pytest.raises(NotFound):
            cart_service.remove_item(12345, CUSTOMER)


class TestPaymentMethod:
    def test_switch_to_gcash(self, cart_service):
        cart = cart_service.add_item(CUSTOMER, 1, 2, 1)
        order_id = cart["concessions"][0]["order"]["id"]

        order = cart_service.set_payment_method(order_id, CUSTOMER, "gcash")
        assert order["payment_method"] == "gcash"

    def test_unknown_method(self, cart_service):
        cart = cart_service.add_item(CUSTOMER, 1, 2, 1)
        order_id = cart["concessions"][0]["order"]["id"]

        with pytest.raises(ValidationError):
            cart_service.set_payment_method(order_id, CUSTOMER, "card")

    def test_locked_after_checkout(self, cart_service, place_order):
        order = place_order("cash")
        with pytest.raises(InvalidTransition):
            cart_service.set_payment_method(order["id"], CUSTOMER, "gcash")


class TestQuoteItem:
    def test_variant_priced_item_quotes_a_range(self, cart_service):
        quote = cart_service.quote_item(1)

        assert quote["starting_price"] == Decimal("70.00")
        assert quote["max_price"] == Decimal("112.00")
        assert quote["variant_priced"] is True

    def test_fixed_price_item(self, cart_service):
        quote = cart_service.quote_item(2)

        assert quote["starting_price"] == quote["max_price"] == Decimal("55.00")
        assert quote["variant_priced"] is False

    def test_unknown_item(self, cart_service):
        with pytest.raises(NotFound):
            cart_service.quote_item(404)
