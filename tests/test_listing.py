from datetime import datetime, timedelta, timezone

import pytest

from campusbets.errors import MarketRejected
from campusbets.execution.listing import clean_tags, create_market
from campusbets.models.schemas import Market, Session

NOW = datetime(2024, 3, 1, 12, tzinfo=timezone.utc)


class FakeStore:
    def __init__(self):
        self.created = []

    def create(self, headline, created_by, expires_at, tags=(), session=None, now=None):
        self.created.append(dict(headline=headline, created_by=created_by, expires_at=expires_at, tags=tags))
        return Market(
            id="new",
            headline=headline,
            created_at=now,
            expires_at=expires_at,
            created_by=created_by,
            tags=tags,
        )


def make_session():
    return Session(access_token="jwt", refresh_token="r", expires_at=NOW + timedelta(hours=1), user_id="u1")


def test_create_market_defaults_to_one_week():
    store = FakeStore()
    market = create_market(store, make_session(), "  Will it snow?  ", now=NOW)

    assert market.headline == "Will it snow?"
    assert market.expires_at == NOW + timedelta(days=7)
    assert market.created_by == "u1"
    assert market.pool.total == 0


@pytest.mark.parametrize(
    "session,headline,days",
    [
        (None, "Will it snow?", 7),
        (make_session(), "   ", 7),
        (make_session(), "Will it snow?", 0),
        (make_session(), "Will it snow?", 31),
    ],
)
def test_invalid_input_never_reaches_store(session, headline, days):
    store = FakeStore()
    with pytest.raises(MarketRejected):
        create_market(store, session, headline, expires_in_days=days, now=NOW)
    assert store.created == []


def test_tags_are_normalised():
    assert clean_tags([" Food", "food", "", "Sports "]) == ["food", "sports"]
    assert clean_tags(None) == []
