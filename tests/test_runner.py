import logging

from campusbets.api.supabase_client import StoreError
from campusbets.data.market_registry import MarketRegistry
from campusbets.runner import run_one_cycle


class FailingStore:
    def list(self, session=None):
        raise StoreError("connection refused")


def test_sample_cycle_fills_registry(caplog):
    registry = MarketRegistry()
    with caplog.at_level(logging.INFO):
        run_one_cycle(store=None, registry=registry, use_sample=True)

    rows = {row.market_id: row for row in registry.board()}
    assert rows["SAMPLE-LATE-PROF"].yes_odds == "3:1"
    assert rows["SAMPLE-EMPTY"].yes_percent == 50
    assert "yes 25%" in caplog.text


def test_failed_fetch_keeps_previous_board(caplog):
    registry = MarketRegistry()
    run_one_cycle(store=None, registry=registry, use_sample=True)

    with caplog.at_level(logging.WARNING):
        run_one_cycle(store=FailingStore(), registry=registry, use_sample=False)

    assert len(registry.markets()) == 2
    assert "will try again" in caplog.text
