from __future__ import annotations

import asyncio
import logging
from typing import Optional

from campusbets.api.supabase_client import StoreError
from campusbets.data.stores import AccountStore
from campusbets.errors import ProfileFetchTimeout
from campusbets.models.schemas import Profile, Session

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = 1.0
DEFAULT_TIMEOUT = 5.0


class ProfileLoader:
    """Keeps the signed-in user's profile current.

    Only one refresh is ever pending: scheduling another cancels the last.
    Must be driven from inside a running event loop, since
    ``schedule_refresh`` creates a task.
    """

    def __init__(
        self,
        accounts: AccountStore,
        debounce: float = DEFAULT_DEBOUNCE,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.accounts = accounts
        self.debounce = debounce
        self.timeout = timeout
        self.profile: Optional[Profile] = None
        self.last_error: Optional[Exception] = None
        self._pending: Optional[asyncio.Task] = None

    async def load(
        self,
        user_id: str,
        email: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> Profile:
        """Fetch (or create) the profile, giving up after ``timeout`` seconds."""
        try:
            profile = await asyncio.wait_for(
                asyncio.to_thread(self.accounts.get_or_create, user_id, email, session),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ProfileFetchTimeout(user_id, self.timeout) from exc
        self.profile = profile
        self.last_error = None
        return profile

    def schedule_refresh(
        self,
        user_id: str,
        email: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> asyncio.Task:
        self.cancel()
        self._pending = asyncio.create_task(self._refresh_after_debounce(user_id, email, session))
        return self._pending

    async def _refresh_after_debounce(
        self,
        user_id: str,
        email: Optional[str],
        session: Optional[Session],
    ) -> Optional[Profile]:
        await asyncio.sleep(self.debounce)
        try:
            return await self.load(user_id, email, session)
        except (StoreError, ProfileFetchTimeout) as exc:
            # the session stays valid without a profile
            logger.warning("Profile refresh for %s failed: %s", user_id, exc)
            self.profile = None
            self.last_error = exc
            return None
        except Exception as exc:
            logger.exception("Unexpected error refreshing profile for %s", user_id)
            self.profile = None
            self.last_error = exc
            return None

    def on_session_change(self, event: str, session: Optional[Session]) -> None:
        """``SessionManager`` subscriber."""
        if session is None:
            self.cancel()
            self.profile = None
            return
        logger.debug("Session event %s; refreshing profile for %s", event, session.user_id)
        self.schedule_refresh(session.user_id, session.email, session)

    def cancel(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    def close(self) -> None:
        self.cancel()
        self.profile = None
