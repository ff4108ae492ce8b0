import asyncio
import time
from datetime import datetime, timedelta, timezone

import pytest

from campusbets.api.supabase_client import StoreError
from campusbets.errors import ProfileFetchTimeout
from campusbets.execution.profile_loader import ProfileLoader
from campusbets.models.schemas import Profile, Session

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_session(user_id="u1"):
    return Session(
        access_token="jwt",
        refresh_token="r",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        user_id=user_id,
        email=f"{user_id}@campus.edu",
    )


class FakeAccounts:
    def __init__(self, delay=0.0, error=None):
        self.delay = delay
        self.error = error
        self.calls = []

    def get_or_create(self, user_id, email=None, session=None):
        self.calls.append(user_id)
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return Profile(id=user_id, email=email, balance=1000, created_at=NOW)


@pytest.mark.asyncio
async def test_load_sets_profile():
    loader = ProfileLoader(FakeAccounts(), timeout=1.0)
    profile = await loader.load("u1", "u1@campus.edu")

    assert profile.balance == 1000
    assert loader.profile is profile


@pytest.mark.asyncio
async def test_slow_fetch_times_out_with_typed_error():
    loader = ProfileLoader(FakeAccounts(delay=0.3), timeout=0.05)

    with pytest.raises(ProfileFetchTimeout) as err:
        await loader.load("u1")
    assert err.value.user_id == "u1"
    assert loader.profile is None


@pytest.mark.asyncio
async def test_new_refresh_cancels_pending_one():
    accounts = FakeAccounts()
    loader = ProfileLoader(accounts, debounce=0.05)

    first = loader.schedule_refresh("u1")
    second = loader.schedule_refresh("u2")
    profile = await second

    assert first.cancelled()
    assert accounts.calls == ["u2"]
    assert profile.id == "u2"


@pytest.mark.asyncio
async def test_failed_refresh_clears_profile():
    loader = ProfileLoader(FakeAccounts(error=StoreError("network down")), debounce=0)
    loader.profile = Profile(id="u1", balance=5, created_at=NOW)

    result = await loader.schedule_refresh("u1")
    assert result is None
    assert loader.profile is None
    assert isinstance(loader.last_error, StoreError)


@pytest.mark.asyncio
async def test_session_events_drive_refresh_and_clear():
    accounts = FakeAccounts()
    loader = ProfileLoader(accounts, debounce=0)

    loader.on_session_change("SIGNED_IN", make_session())
    await asyncio.sleep(0.2)
    assert loader.profile is not None and loader.profile.id == "u1"

    loader.on_session_change("SIGNED_OUT", None)
    assert loader.profile is None


@pytest.mark.asyncio
async def test_sign_out_cancels_pending_refresh():
    accounts = FakeAccounts()
    loader = ProfileLoader(accounts, debounce=0.05)

    pending = loader.schedule_refresh("u1")
    loader.on_session_change("SIGNED_OUT", None)
    await asyncio.sleep(0.1)

    assert pending.cancelled()
    assert accounts.calls == []
    loader.close()


@pytest.mark.asyncio
async def test_malformed_profile_row_clears_profile():
    class BrokenAccounts(FakeAccounts):
        def get_or_create(self, user_id, email=None, session=None):
            return Profile.model_validate({"id": user_id, "balance": -1, "created_at": NOW})

    loader = ProfileLoader(BrokenAccounts(), debounce=0)
    loader.profile = Profile(id="u1", balance=5, created_at=NOW)

    result = await loader.schedule_refresh("u1")
    assert result is None
    assert loader.profile is None
    assert isinstance(loader.last_error, ValueError)
