"""
Tests for the Cart orchestrator
"""

from decimal import Decimal

import pytest

from sessioncart.cart import Cart, CartEvent, Detail, LineItem, LineKind, MemorySessionStore
from sessioncart.errors import (
    CartAlreadyStoredError,
    InvalidArgumentError,
    InvalidRowIdError,
    UnknownModelError,
)
from tests.conftest import Product


class TestAddItem:
    """Adding items and merging on identity."""

    def test_add_item_with_global_tax(self, cart):
        """Item at 50.00 x2 with 6% exclusive tax."""
        line = cart.add_item("sku1", "Item", quantity=2, price="50.00")

        assert line.subtotal() == Decimal("100.00")
        assert line.taxed_amount() == Decimal("6.00")
        assert line.total() == Decimal("106.00")
        assert cart.get_item(line.row_id) == line

    def test_same_identity_merges_quantity(self, cart):
        """Adding the same id/options twice yields one row."""
        cart.add_item("sku1", "Item", quantity=2, price="10")
        line = cart.add_item("sku1", "Item", quantity=3, price="10")

        assert line.quantity == 5
        assert len(cart.items()) == 1
        assert cart.count() == 5

    def test_different_options_are_separate_rows(self, cart):
        cart.add_item("shirt", "Shirt", quantity=1, price="20", options={"size": "L"})
        cart.add_item("shirt", "Shirt", quantity=1, price="20", options={"size": "M"})

        assert len(cart.items()) == 2

    def test_add_from_mapping(self, cart):
        line = cart.add_item({"id": "book-1", "name": "Book", "price": "12.00", "quantity": 2})

        assert line.quantity == 2
        assert line.tax_rate == Decimal("0.06")

    def test_add_from_purchasable(self, cart, product):
        line = cart.add_item(product, quantity=2, options={"voltage": "230V"})

        assert line.id == "sku-42"
        assert line.quantity == 2
        assert line.options == {"voltage": "230V"}
        assert line.associated_model == "tests.conftest.Product"

    def test_add_from_purchasable_defaults_to_one(self, cart, product):
        assert cart.add_item(product).quantity == 1

    def test_add_from_purchasable_positional_quantity(self, cart, product):
        """Second positional argument is the quantity for a purchasable"""
        line = cart.add_item(product, 3)

        assert line.quantity == 3
        assert line.name == "Espresso Machine"

    @pytest.mark.parametrize("kind", ["shipping", "discount", "bogus"])
    def test_add_from_mapping_rejects_non_item_kind(self, cart, kind):
        """Only item lines go into the items partition"""
        with pytest.raises(InvalidArgumentError):
            cart.add_item({"id": "x", "name": "X", "price": "10", "quantity": 1, "kind": kind})

        assert cart.items() == {}

    def test_add_from_mapping_with_item_kind(self, cart):
        line = cart.add_item({"id": "x", "name": "X", "price": "10", "quantity": 1, "type": "item"})

        assert line.kind == LineKind.ITEM

    def test_missing_quantity_rejected(self, cart):
        with pytest.raises(InvalidArgumentError):
            cart.add_item("sku1", "Item", price="10")

    def test_non_positive_quantity_rejected(self, cart):
        with pytest.raises(InvalidArgumentError):
            cart.add_item("sku1", "Item", quantity=0, price="10")
        assert cart.is_empty()

    def test_event_carries_merged_line(self, cart, sink):
        cart.add_item("sku1", "Item", quantity=1, price="10")
        cart.add_item("sku1", "Item", quantity=2, price="10")

        event, payload = sink.events[-1]
        assert event == CartEvent.ITEM_ADDED
        assert payload[0].quantity == 3


class TestUpdateItem:
    """Updating lines by quantity, patch or purchasable."""

    def test_update_quantity(self, cart, sink):
        line = cart.add_item("sku1", "Item", quantity=1, price="10")

        updated = cart.update_item(line.row_id, 4)

        assert updated.quantity == 4
        assert cart.get_item(line.row_id).quantity == 4
        assert sink.names()[-1] == "cart.updated"

    def test_update_to_zero_removes_row(self, cart, sink):
        line = cart.add_item("sku1", "Item", quantity=2, price="10")

        assert cart.update_item(line.row_id, 0) is None
        assert cart.get_item(line.row_id) is None
        assert cart.get_item(line.row_id, default="missing") == "missing"
        assert sink.names()[-1] == "cart.item_removed"

    def test_update_negative_removes_row(self, cart):
        line = cart.add_item("sku1", "Item", quantity=2, price="10")

        assert cart.update_item(line.row_id, -1) is None
        assert cart.items() == {}

    def test_update_unknown_row(self, cart):
        with pytest.raises(InvalidRowIdError):
            cart.update_item("nope", 1)

    def test_patch_keeps_identity_for_name_and_price(self, cart):
        line = cart.add_item("sku1", "Item", quantity=1, price="10")

        updated = cart.update_item(line.row_id, {"name": "Renamed", "price": "15"})

        assert updated.row_id == line.row_id
        assert cart.get_item(line.row_id).price == Decimal("15")

    def test_patch_options_merges_into_existing_row(self, cart):
        """Relocating a row onto an existing one sums quantities."""
        large = cart.add_item("shirt", "Shirt", quantity=1, price="20", options={"size": "L"})
        medium = cart.add_item("shirt", "Shirt", quantity=2, price="20", options={"size": "M"})

        updated = cart.update_item(medium.row_id, {"options": {"size": "L"}})

        assert updated.row_id == large.row_id
        assert updated.quantity == 3
        assert list(cart.items()) == [large.row_id]

    def test_patch_id_relocates_row(self, cart):
        line = cart.add_item("sku1", "Item", quantity=1, price="10")

        updated = cart.update_item(line.row_id, {"id": "sku2"})

        assert cart.get_item(line.row_id) is None
        assert cart.get_item(updated.row_id).id == "sku2"

    def test_update_from_purchasable(self, cart):
        line = cart.add_item("sku1", "Item", quantity=1, price="10")

        updated = cart.update_item(line.row_id, Product("sku1", "Item v2", "12.50"))

        assert updated.row_id == line.row_id
        assert updated.name == "Item v2"
        assert updated.price == Decimal("12.50")


class TestRemove:
    """Removing items and details."""

    def test_remove_item(self, cart, sink):
        line = cart.add_item("sku1", "Item", quantity=1, price="10")

        cart.remove_item(line.row_id)

        assert cart.items() == {}
        event, payload = sink.events[-1]
        assert event == CartEvent.ITEM_REMOVED
        assert payload[0].row_id == line.row_id

    def test_remove_unknown_item(self, cart):
        with pytest.raises(InvalidRowIdError):
            cart.remove_item("nope")

    def test_remove_detail(self, cart, sink):
        detail = cart.add_detail(LineKind.SHIPPING, quantity=1, price="10.00")

        cart.remove_detail(detail.row_id)

        assert cart.details() == {}
        assert sink.names()[-1] == "cart.detail_removed"

    def test_remove_unknown_detail(self, cart):
        with pytest.raises(InvalidRowIdError):
            cart.remove_detail("nope")


class TestDetails:
    """Detail lines and their fixed tax rate."""

    def test_shipping_detail_taxed_at_policy_rate(self, cart):
        detail = cart.add_detail("shipping", quantity=1, price="10.00")

        assert isinstance(detail, Detail)
        assert detail.kind == LineKind.SHIPPING
        assert detail.discountable is False
        assert detail.tax_rate == Decimal("0.6")
        assert detail.total() == Decimal("16.00")

    def test_cart_total_includes_taxed_details(self, cart):
        cart.add_item("sku1", "Item", quantity=2, price="50.00")
        cart.add_detail("shipping", quantity=1, price="10.00")

        assert cart.subtotal() == Decimal("100.00")
        assert cart.items_total(with_tax=True) == Decimal("106.00")
        assert cart.details_total() == Decimal("10.00")
        assert cart.details_total(with_tax=True) == Decimal("16.00")
        assert cart.tax() == Decimal("12.00")
        assert cart.total() == Decimal("122.00")

    def test_same_detail_merges(self, cart):
        cart.add_detail("adminfees", "Admin fee", quantity=1, price="1.50")
        detail = cart.add_detail("adminfees", "Admin fee", quantity=1, price="1.50")

        assert detail.quantity == 2
        assert len(cart.details()) == 1

    def test_details_not_counted(self, cart):
        cart.add_detail("shipping", quantity=1, price="10.00")
        assert cart.count() == 0
        assert cart.is_empty()

    def test_unknown_kind(self, cart):
        with pytest.raises(InvalidArgumentError):
            cart.add_detail("gift-wrap", quantity=1, price="3")

    def test_item_kind_rejected(self, cart):
        with pytest.raises(InvalidArgumentError):
            cart.add_detail("item", quantity=1, price="3")

    def test_event(self, cart, sink):
        cart.add_detail("discount", "Welcome", quantity=1, price="5")
        assert sink.names() == ["cart.detail_added"]


class TestAttributes:
    """Free-form cart attributes."""

    def test_add_and_get(self, cart, sink):
        attributes = cart.add_attribute("coupon", "WELCOME10")

        assert attributes == {"coupon": "WELCOME10"}
        assert cart.get_attribute("coupon") == "WELCOME10"
        assert sink.events[-1] == (CartEvent.ATTRIBUTE_ADDED, ("coupon", "WELCOME10"))

    def test_remove(self, cart, sink):
        cart.add_attribute("note", "Leave at door")

        cart.remove_attribute("note")

        assert cart.get_attribute("note", "none") == "none"
        assert sink.events[-1] == (CartEvent.ATTRIBUTE_REMOVED, ("Leave at door",))


class TestLookup:
    """Lookups and searches."""

    def test_get_item_by_field(self, cart):
        line = cart.add_item("sku1", "Item", quantity=1, price="10")
        cart.add_item("sku2", "Other", quantity=1, price="10")

        assert cart.get_item("sku1", field="id") == line
        assert cart.get_item("sku9", field="id") is None

    def test_search_items(self, cart):
        cart.add_item("sku1", "Cheap", quantity=1, price="1")
        expensive = cart.add_item("sku2", "Expensive", quantity=1, price="100")

        found = cart.search_items(lambda line, row_id: line.price > 50)

        assert list(found) == [expensive.row_id]

    def test_search_details(self, cart):
        shipping = cart.add_detail("shipping", quantity=1, price="10")
        cart.add_detail("discount", quantity=1, price="5")

        found = cart.search_details(lambda line, row_id: line.kind == LineKind.SHIPPING)

        assert list(found) == [shipping.row_id]


class TestInstancesAndClearing:
    """Named instances, clear and destroy."""

    def test_instances_are_independent(self, cart):
        cart.instance("wishlist").add_item("sku1", "Item", quantity=1, price="10")

        assert cart.current_instance() == "wishlist"
        assert cart.count() == 1
        assert cart.instance().count() == 0
        assert cart.current_instance() == "default"

    def test_session_keys_namespaced(self, cart, session_store):
        cart.add_item("sku1", "Item", quantity=1, price="10")
        assert session_store.keys() == ["cart.default"]

    def test_clear(self, cart):
        cart.add_item("sku1", "Item", quantity=1, price="10")
        cart.add_detail("shipping", quantity=1, price="10")
        cart.add_attribute("coupon", "X")

        cart.clear()

        assert cart.items() == {}
        assert cart.details() == {}
        assert cart.attributes() == {}
        assert cart.total() == Decimal("0")

    def test_destroy(self, cart, session_store):
        cart.add_item("sku1", "Item", quantity=1, price="10")

        cart.destroy()

        assert not session_store.has("cart.default")
        assert cart.is_empty()

    def test_summary(self, cart):
        assert cart.summary()["is_empty"] is True

        cart.add_item("sku1", "Item", quantity=2, price="50.00")
        summary = cart.summary()

        assert summary["count"] == 2.0
        assert summary["subtotal"] == 100.0
        assert summary["total"] == 106.0
        assert summary["items"][0]["id"] == "sku1"

    def test_empty_summary_has_float_amounts(self, cart):
        """Empty and populated summaries share the same value types"""
        summary = cart.summary()

        for key in ("count", "subtotal", "tax", "total"):
            assert summary[key] == 0.0
            assert isinstance(summary[key], float)


class TestAssociate:
    """Associating items with domain types."""

    def test_associate_class(self, cart):
        line = cart.add_item("sku1", "Item", quantity=1, price="10")

        cart.associate(line.row_id, Product)

        assert cart.get_item(line.row_id).associated_model == "tests.conftest.Product"

    def test_associate_dotted_path(self, cart):
        line = cart.add_item("sku1", "Item", quantity=1, price="10")

        cart.associate(line.row_id, "decimal.Decimal")

        assert cart.get_item(line.row_id).associated_model == "decimal.Decimal"

    @pytest.mark.parametrize("model", ["shop.models.Missing", "json.dumps", "not a path"])
    def test_unknown_model(self, cart, model):
        line = cart.add_item("sku1", "Item", quantity=1, price="10")

        with pytest.raises(UnknownModelError):
            cart.associate(line.row_id, model)

    def test_unknown_row(self, cart):
        with pytest.raises(InvalidRowIdError):
            cart.associate("nope", Product)


class TestStoreRestore:
    """Durable snapshots."""

    def test_store_then_restore(self, cart, repository, sink):
        line = cart.add_item("sku1", "Item", quantity=2, price="10")
        cart.add_attribute("coupon", "X")

        cart.store("user-1")
        assert repository.exists("user-1")
        assert sink.events[-1] == (CartEvent.STORED, ("user-1",))

        cart.destroy()
        cart.restore("user-1")

        assert cart.get_item(line.row_id).quantity == 2
        assert cart.get_attribute("coupon") == "X"
        assert not repository.exists("user-1")
        assert sink.events[-1] == (CartEvent.RESTORED, ("user-1",))

    def test_store_twice_fails(self, cart):
        cart.add_item("sku1", "Item", quantity=1, price="10")
        cart.store("user-1")

        with pytest.raises(CartAlreadyStoredError):
            cart.store("user-1")

    def test_restore_overwrites_without_summing(self, cart):
        line = cart.add_item("sku1", "Item", quantity=2, price="10")
        cart.store("user-1")
        cart.add_item("sku1", "Item", quantity=5, price="10")

        cart.restore("user-1")

        assert cart.get_item(line.row_id).quantity == 2

    def test_restore_into_recorded_instance(self, cart):
        cart.instance("wishlist")
        line = cart.add_item("sku1", "Item", quantity=1, price="10")
        cart.store("saved")
        cart.destroy()

        cart.instance("default")
        cart.restore("saved")

        assert cart.current_instance() == "default"
        assert cart.is_empty()
        assert cart.instance("wishlist").get_item(line.row_id) is not None

    def test_restore_unknown_identifier_is_noop(self, cart, sink):
        cart.restore("missing")
        assert sink.events == []

    def test_stored_details_come_back_as_details(self, cart):
        detail = cart.add_detail("shipping", quantity=1, price="10")
        cart.store("user-1")
        cart.clear()

        cart.restore("user-1")

        restored = cart.get_detail(detail.row_id)
        assert isinstance(restored, Detail)
        assert restored.total() == Decimal("16.00")


class TestSettings:
    """Configured tax rate."""

    def test_tax_rate_from_settings(self, sink, repository):
        from sessioncart.config import CartSettings

        cart = Cart(
            MemorySessionStore(),
            events=sink,
            repository=repository,
            settings=CartSettings(tax_rate=Decimal("0.2")),
        )
        line = cart.add_item("sku1", "Item", quantity=1, price="100")

        assert isinstance(line, LineItem)
        assert line.taxed_amount() == Decimal("20.00")
        assert cart.total() == Decimal("120.00")


class TestCreateCart:
    """Factory for web sessions."""

    def test_wires_redis_session_and_shared_dispatcher(self, settings, repository):
        from sessioncart.cart import RedisSessionStore, create_cart, get_event_dispatcher

        cart = create_cart("session-abc", repository=repository, settings=settings)

        assert isinstance(cart.session, RedisSessionStore)
        assert cart.session.session_id == "session-abc"
        assert cart.session.ttl == settings.session_ttl
        assert cart.events is get_event_dispatcher()
        assert cart.repository is repository
