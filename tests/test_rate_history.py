from datetime import timedelta

import pytest

from pricing_engine.core.errors import OutOfOrderSample
from pricing_engine.models import RateHistoryPoint
from pricing_engine.services.rate_history import RateHistoryStore

from .conftest import EPOCH


def point(code: str, rate: float, seconds: int) -> RateHistoryPoint:
    return RateHistoryPoint(code=code, rate=rate, timestamp=EPOCH + timedelta(seconds=seconds))


class TestAppendAndRead:
    def test_recent_returns_newest_oldest_first(self, history):
        history.append([point("EUR", 0.90 + i / 100, i) for i in range(5)])
        recent = history.recent("EUR", 3)
        assert [p.rate for p in recent] == [0.90 + i / 100 for i in (2, 3, 4)]
        assert [p.timestamp for p in recent] == sorted(p.timestamp for p in recent)

    def test_recent_returns_single_point(self, history):
        history.append([point("EUR", 0.9, 0)])
        assert len(history.recent("EUR", 20)) == 1

    def test_recent_with_non_positive_limit(self, history):
        history.append([point("EUR", 0.9, 0)])
        assert history.recent("EUR", 0) == []

    def test_equal_timestamps_allowed(self, history):
        history.append([point("EUR", 0.9, 1)])
        history.append([point("EUR", 0.91, 1)])
        assert [p.rate for p in history.recent("EUR", 5)] == [0.9, 0.91]

    def test_all_is_filtered_and_ordered(self, history):
        history.append([point("EUR", 0.9, 0), point("GBP", 0.79, 0)])
        history.append([point("EUR", 0.91, 5), point("GBP", 0.8, 5)])
        everything = history.all()
        assert len(everything) == 4
        assert [p.timestamp for p in everything] == sorted(p.timestamp for p in everything)
        assert [p.rate for p in history.all(code="gbp")] == [0.79, 0.8]

    def test_reads_are_restartable(self, history):
        history.append([point("EUR", 0.9, 0), point("EUR", 0.91, 1)])
        assert history.all("EUR") == history.all("EUR")
        assert history.recent("EUR", 10) == history.recent("EUR", 10)


class TestOrdering:
    def test_out_of_order_sample_rejected(self, history):
        history.append([point("EUR", 0.9, 10)])
        with pytest.raises(OutOfOrderSample):
            history.append([point("EUR", 0.8, 5)])
        assert [p.rate for p in history.all("EUR")] == [0.9]

    def test_out_of_order_within_batch_rejects_whole_batch(self, history):
        with pytest.raises(OutOfOrderSample):
            history.append([point("EUR", 0.9, 10), point("GBP", 0.8, 1), point("EUR", 0.8, 5)])
        assert history.all() == []

    def test_other_codes_are_independent(self, history):
        history.append([point("EUR", 0.9, 10)])
        history.append([point("GBP", 0.8, 1)])
        assert len(history.all()) == 2

    def test_base_currency_never_sampled(self, history):
        with pytest.raises(ValueError):
            history.append([point("USD", 1.0, 0)], base_currency="USD")


class TestTrend:
    def test_trend_needs_two_points(self, history):
        history.append([point("EUR", 0.9, 0)])
        assert history.trend("EUR") == []
        history.append([point("EUR", 0.91, 1)])
        assert len(history.trend("EUR")) == 2

    def test_trend_window(self, history):
        history.append([point("EUR", 0.9, i) for i in range(30)])
        assert len(history.trend("EUR", window=20)) == 20


def test_retention_keeps_newest(db):
    store = RateHistoryStore(db, retention=3)
    store.append([point("EUR", 0.9 + i / 100, i) for i in range(5)])
    assert [p.rate for p in store.all()] == [0.90 + i / 100 for i in (2, 3, 4)]
