"""
Unit tests for InventoryReconciler.

Run: pytest tests/unit/test_inventory_sync.py -v
"""

from unittest.mock import MagicMock

from errors import TransportError
from inventory_sync import NOT_STOCKED, InventoryReconciler
from tests.fakes import FakeShopify

LOCATION = "gid://shopify/Location/1001"


class TestSetQuantities:
    """Tests for InventoryReconciler.set_quantities()"""

    def test_stocked_items_are_set_in_one_call(self):
        """Should set absolute quantities without activation."""
        # Arrange
        shop = FakeShopify()
        shop.stocked.update({("gid://shopify/InventoryItem/1", LOCATION), ("gid://shopify/InventoryItem/2", LOCATION)})
        reconciler = InventoryReconciler(shop)

        # Act
        outcomes = reconciler.set_quantities(1001, [("1", 5), ("2", 0)])

        # Assert
        assert all(o.ok for o in outcomes)
        assert shop.levels[("gid://shopify/InventoryItem/1", LOCATION)] == 5
        assert shop.count("inventory_set_quantities") == 1
        assert shop.count("inventory_activate") == 0

    def test_not_stocked_item_is_activated_and_resubmitted(self):
        """Should activate the rejected item and set its quantity in a second pass."""
        # Arrange
        shop = FakeShopify()
        shop.stocked.add(("gid://shopify/InventoryItem/1", LOCATION))
        reconciler = InventoryReconciler(shop)

        # Act
        outcomes = reconciler.set_quantities(1001, [("1", 5), ("2", 7)])

        # Assert
        assert [o.ok for o in outcomes] == [True, True]
        assert outcomes[1].activated is True
        assert outcomes[0].activated is False
        assert shop.levels[("gid://shopify/InventoryItem/2", LOCATION)] == 7
        assert shop.count("inventory_activate") == 1
        assert shop.count("inventory_set_quantities") == 2

    def test_retry_is_restricted_to_rejected_items(self):
        """The second set call should only carry the activated items."""
        # Arrange
        shop = MagicMock()
        shop.inventory_set_quantities.side_effect = [
            [{"code": NOT_STOCKED, "field": ["input", "quantities", "1", "locationId"], "message": "not stocked"}],
            [],
        ]
        shop.inventory_activate.return_value = []
        reconciler = InventoryReconciler(shop)

        # Act
        reconciler.set_quantities(1001, [("1", 1), ("2", 2), ("3", 3)])

        # Assert
        retry_rows = shop.inventory_set_quantities.call_args_list[1].args[0]
        assert [r.inventory_item_id for r in retry_rows] == ["gid://shopify/InventoryItem/2"]
        shop.inventory_activate.assert_called_once_with("gid://shopify/InventoryItem/2", LOCATION, 2)

    def test_requests_are_chunked(self):
        """Should split 160 items into chunks of 75."""
        shop = MagicMock()
        shop.inventory_set_quantities.return_value = []
        reconciler = InventoryReconciler(shop)

        reconciler.set_quantities(1001, [(str(i), 1) for i in range(160)])

        sizes = [len(c.args[0]) for c in shop.inventory_set_quantities.call_args_list]
        assert sizes == [75, 75, 10]

    def test_transport_failure_is_reported_not_raised(self):
        """Inventory failures are best-effort: reported per item, never raised."""
        # Arrange
        shop = MagicMock()
        shop.inventory_set_quantities.side_effect = TransportError(500, "graphql:invSet", "down")
        reconciler = InventoryReconciler(shop)

        # Act
        outcomes = reconciler.set_quantities(1001, [("1", 1)])

        # Assert
        assert outcomes[0].ok is False
        assert "500" in outcomes[0].error

    def test_other_user_errors_mark_only_that_item(self):
        shop = MagicMock()
        shop.inventory_set_quantities.return_value = [
            {"code": "INVALID_QUANTITY", "field": ["input", "quantities", "0", "quantity"], "message": "too big"},
        ]
        reconciler = InventoryReconciler(shop)

        outcomes = reconciler.set_quantities(1001, [("1", 10 ** 9), ("2", 1)])

        assert [o.ok for o in outcomes] == [False, True]
        shop.inventory_activate.assert_not_called()
