from storeflow.inventory.alerts import AlertUrgency, stock_percentage, urgency_for


class TestUrgency:
    def test_out_of_stock_is_critical(self):
        assert urgency_for(0, 10) == AlertUrgency.CRITICAL

    def test_below_quarter_is_high(self):
        assert urgency_for(2, 10) == AlertUrgency.HIGH

    def test_below_half_is_medium(self):
        assert urgency_for(4, 10) == AlertUrgency.MEDIUM

    def test_at_threshold_is_low(self):
        assert urgency_for(10, 10) == AlertUrgency.LOW


class TestStockPercentage:
    def test_percentage_of_threshold(self):
        assert stock_percentage(5, 20) == 25.0

    def test_capped_at_hundred(self):
        assert stock_percentage(50, 10) == 100.0

    def test_zero_threshold(self):
        assert stock_percentage(0, 0) == 0.0
