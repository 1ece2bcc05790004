from storeflow.inventory.alerts import AlertUrgency, inventory_summary, low_stock_alerts
from storeflow.inventory.ledger import register_product_stock


def _register_catalogue(store_id):
    register_product_stock(store_id, "prod-empty", quantity=0, low_stock_threshold=10)
    register_product_stock(store_id, "prod-high", quantity=2, low_stock_threshold=10)
    register_product_stock(store_id, "prod-medium", quantity=4, low_stock_threshold=10)
    register_product_stock(store_id, "prod-low", quantity=9, low_stock_threshold=10)
    register_product_stock(store_id, "prod-healthy", quantity=50, low_stock_threshold=10)
    register_product_stock(store_id, "prod-digital", quantity=0, track_inventory=False)


class TestLowStockAlerts:
    def test_ordered_by_urgency(self, store_id):
        _register_catalogue(store_id)
        alerts = low_stock_alerts(store_id)
        assert [alert.product_id for alert in alerts] == [
            "prod-empty",
            "prod-high",
            "prod-medium",
            "prod-low",
        ]
        assert alerts[0].urgency == AlertUrgency.CRITICAL

    def test_excludes_healthy_and_untracked(self, store_id):
        _register_catalogue(store_id)
        product_ids = {alert.product_id for alert in low_stock_alerts(store_id)}
        assert "prod-healthy" not in product_ids
        assert "prod-digital" not in product_ids

    def test_filter_by_urgency(self, store_id):
        _register_catalogue(store_id)
        alerts = low_stock_alerts(store_id, urgency="High")
        assert [alert.product_id for alert in alerts] == ["prod-high"]

    def test_limit(self, store_id):
        _register_catalogue(store_id)
        assert len(low_stock_alerts(store_id, limit=2)) == 2

    def test_other_stores_are_excluded(self, store_id):
        register_product_stock("store-002", "prod-empty", quantity=0)
        assert low_stock_alerts(store_id) == []


class TestInventorySummary:
    def test_summary(self, store_id):
        _register_catalogue(store_id)
        summary = inventory_summary(store_id)
        assert summary.tracked_products == 5
        assert summary.untracked_products == 1
        assert summary.low_stock_products == 4
        assert summary.out_of_stock_products == 1
        assert summary.total_units == 65
