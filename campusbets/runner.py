from __future__ import annotations

import logging
import os
import time
from datetime import datetime, timedelta, timezone
from typing import List

import schedule

from campusbets.api.supabase_client import StoreError, SupabaseClient
from campusbets.data.market_registry import MarketRegistry
from campusbets.data.stores import MarketStore
from campusbets.models.schemas import Market

logger = logging.getLogger(__name__)


def _sample_markets() -> List[Market]:
    now = datetime.now(timezone.utc)
    return [
        Market(
            id="SAMPLE-LATE-PROF",
            headline="Will the professor be late to Friday's lecture?",
            yes_stake=100,
            no_stake=300,
            created_at=now,
            expires_at=now + timedelta(days=7),
            created_by="sample",
            tags=["campus", "lectures"],
        ),
        Market(
            id="SAMPLE-EMPTY",
            headline="Will the vending machine be fixed this week?",
            created_at=now - timedelta(hours=1),
            expires_at=now + timedelta(days=3),
            created_by="sample",
        ),
    ]


def run_one_cycle(store: MarketStore, registry: MarketRegistry, use_sample: bool = True) -> None:
    if use_sample:
        markets = _sample_markets()
    else:
        try:
            markets = store.list()
        except StoreError as exc:
            logger.warning("Failed to fetch markets, will try again next cycle: %s", exc)
            return

    registry.update(markets)
    if not markets:
        logger.info("No bets available yet")
        return

    for row in registry.board():
        logger.info(
            "%s | yes %d%% (%s) | no %d%% (%s) | staked %d%s",
            row.headline,
            row.yes_percent,
            row.yes_odds,
            row.no_percent,
            row.no_odds,
            row.total_staked,
            "" if row.is_open else " | closed",
        )


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    use_sample = os.getenv("CAMPUSBETS_SAMPLE_DATA", "1") != "0"
    run_loop = os.getenv("CAMPUSBETS_RUN_LOOP", "0") == "1"
    every = int(os.getenv("CAMPUSBETS_REFRESH_SECONDS", "30"))

    store = MarketStore(SupabaseClient())
    registry = MarketRegistry()

    if run_loop:
        logger.info("Refreshing the board every %d seconds", every)
        schedule.every(every).seconds.do(run_one_cycle, store=store, registry=registry, use_sample=use_sample)
        run_one_cycle(store, registry, use_sample=use_sample)
        while True:  # pragma: no cover - runtime path
            schedule.run_pending()
            time.sleep(1)
    else:
        run_one_cycle(store, registry, use_sample=use_sample)


if __name__ == "__main__":
    main()
