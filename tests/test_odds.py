from decimal import Decimal

import pytest

from campusbets.engine.odds import (
    odds,
    odds_ratio,
    percentage,
    pool_after,
    projected_payout,
)
from campusbets.models.schemas import Pool


def test_empty_pool_odds_are_even():
    pool = Pool(yes=0, no=0)
    assert odds(pool, "yes") == "1:1"
    assert odds(pool, "no") == "1:1"
    assert odds_ratio(pool, "yes") is None


def test_odds_against_opposing_pool():
    pool = Pool(yes=100, no=300)
    assert odds(pool, "yes") == "3:1"
    assert odds(pool, "no") == "0.33:1"
    assert odds_ratio(pool, "yes") == Decimal("3.00")


def test_one_sided_pool_uses_sentinel():
    pool = Pool(yes=0, no=40)
    assert odds(pool, "yes") == "1:0"
    assert odds(pool, "no") == "0:1"


def test_odds_round_to_two_places():
    assert odds(Pool(yes=3, no=5), "yes") == "1.67:1"
    assert odds(Pool(yes=4, no=10), "yes") == "2.5:1"


@pytest.mark.parametrize("yes,no", [(1, 0), (0, 1), (7, 3), (250, 1), (1, 999)])
def test_odds_defined_for_any_nonempty_pool(yes, no):
    pool = Pool(yes=yes, no=no)
    for side in ("yes", "no"):
        result = odds(pool, side)
        assert result.endswith(":1") or result == "1:0"


def test_percentage_matches_stake_share():
    pool = Pool(yes=30, no=70)
    assert percentage(pool, "yes") == 30
    assert percentage(pool, "no") == 70


def test_percentage_defaults_to_even_split():
    pool = Pool()
    assert percentage(pool, "yes") == 50
    assert percentage(pool, "no") == 50


def test_percentages_are_rounded_independently():
    pool = Pool(yes=1, no=1)
    assert percentage(pool, "yes") + percentage(pool, "no") == 100

    # 1/8 = 12.5 -> 13 and 7/8 = 87.5 -> 88
    skewed = Pool(yes=1, no=7)
    assert percentage(skewed, "yes") == 13
    assert percentage(skewed, "no") == 88


def test_first_wager_pays_even_money():
    assert projected_payout(Pool(yes=0, no=0), amount=10, side="yes") == 20


def test_parimutuel_payout_uses_pre_wager_stake():
    pool = Pool(yes=100, no=300)
    assert projected_payout(pool, amount=50, side="yes") == 200


def test_payout_rounds_half_up():
    # 5 + 1 * 5/2 = 7.5
    assert projected_payout(Pool(yes=2, no=1), amount=5, side="yes") == 8


def test_first_wager_on_empty_side_pays_even_money():
    pool = Pool(yes=0, no=500)
    assert projected_payout(pool, amount=25, side="yes") == 50


def test_queries_do_not_mutate_snapshot():
    pool = Pool(yes=120, no=80)
    first = (odds(pool, "yes"), percentage(pool, "no"), projected_payout(pool, 10, "no"))
    second = (odds(pool, "yes"), percentage(pool, "no"), projected_payout(pool, 10, "no"))
    assert first == second
    assert pool == Pool(yes=120, no=80)


def test_pool_after_adds_to_one_side():
    pool = Pool(yes=10, no=20)
    assert pool_after(pool, "YES", 5) == Pool(yes=15, no=20)
    assert pool_after(pool, "no", 5) == Pool(yes=10, no=25)
    assert pool == Pool(yes=10, no=20)


def test_unknown_side_is_rejected():
    with pytest.raises(ValueError):
        odds(Pool(yes=1, no=1), "maybe")
