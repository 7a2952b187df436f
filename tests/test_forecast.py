"""Tests for forecasting and forex scenarios."""

from datetime import date

import numpy as np
import pytest

from data_ops.errors import InsufficientDataError, ValidationError
from data_ops.forecast import calculate_correlated_forex_scenario, forecast_time_series


class TestForecastTimeSeries:
    def test_appends_forecast_rows(self, store):
        outcome = forecast_time_series(store, "monthly", "month", "revenue", 3, "monthly")
        rows = outcome.dataset.rows
        assert len(rows) == 7
        assert all(r["forecast"] is None for r in rows[:4])
        assert [r["month"] for r in rows[4:]] == ["2024-05-01", "2024-06-01", "2024-07-01"]
        assert all(r["revenue"] is None for r in rows[4:])
        assert outcome.result["message"] == "Generated a forecast for 3 monthly periods."

    def test_band_contains_estimate(self, store):
        rows = forecast_time_series(store, "monthly", "month", "revenue", 2, "quarterly").dataset.rows
        for row in rows[4:]:
            assert row["forecast_lower"] <= row["forecast"] <= row["forecast_upper"]

    def test_two_points_have_zero_width_band(self, store):
        store.load_base({"pair": [
            {"month": "2024-01-01", "revenue": 100},
            {"month": "2024-02-01", "revenue": 110},
        ]})
        row = forecast_time_series(store, "pair", "month", "revenue", 1, "monthly").dataset.rows[-1]
        assert row["month"] == "2024-03-01"
        assert row["forecast"] == pytest.approx(100 + 10 * 60 / 31)
        assert row["forecast_upper"] == pytest.approx(row["forecast"])
        assert row["forecast_lower"] == pytest.approx(row["forecast"])

    def test_daily_frequency(self, store):
        rows = forecast_time_series(store, "monthly", "month", "revenue", 2, "daily").dataset.rows
        assert [r["month"] for r in rows[4:]] == ["2024-04-02", "2024-04-03"]

    def test_one_point_is_insufficient(self, store):
        store.load_base({"one": [{"month": "2024-01-01", "revenue": 1}]})
        with pytest.raises(InsufficientDataError, match="requires at least two data points"):
            forecast_time_series(store, "one", "month", "revenue", 1, "monthly")

    def test_unsupported_frequency(self, store):
        with pytest.raises(ValidationError, match="Unsupported frequency"):
            forecast_time_series(store, "monthly", "month", "revenue", 1, "weekly")

    def test_periods_must_be_positive(self, store):
        with pytest.raises(ValidationError):
            forecast_time_series(store, "monthly", "month", "revenue", 0, "monthly")


class TestForexScenario:
    def test_path_ends_at_scenario_rate(self, store):
        outcome = calculate_correlated_forex_scenario(
            store, "USD/JPY", 160.5, periods=5, rng=np.random.default_rng(0), today=date(2024, 1, 1)
        )
        rows = outcome.dataset.rows
        assert len(rows) == 5
        assert outcome.dataset.column_names == ("date", "USD_JPY_rate", "EUR_JPY_rate")
        assert rows[0]["date"] == "2024-01-02"
        assert rows[-1]["date"] == "2024-01-06"
        assert rows[-1]["USD_JPY_rate"] == pytest.approx(160.5)

    def test_defaults_to_thirty_days(self, store):
        outcome = calculate_correlated_forex_scenario(store, "EUR/JPY", 150, rng=np.random.default_rng(1))
        assert outcome.result["rows"] == 30
        assert "USD_JPY_rate" in outcome.dataset.column_names

    def test_other_pairs_correlate_with_eur_usd(self, store):
        outcome = calculate_correlated_forex_scenario(store, "gbp/usd", 1.3, periods=2, rng=np.random.default_rng(2))
        assert outcome.dataset.column_names == ("date", "GBP_USD_rate", "EUR_USD_rate")

    def test_rate_must_be_positive(self, store):
        with pytest.raises(ValidationError):
            calculate_correlated_forex_scenario(store, "USD/JPY", -1)
