from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from campusbets.api.supabase_client import StoreError, SupabaseClient
from campusbets.models.schemas import Session

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"

SessionListener = Callable[[str, Optional[Session]], None]


def _session_from_payload(payload: Dict[str, Any], now: Optional[datetime] = None) -> Session:
    now = now or datetime.now(timezone.utc)
    if payload.get("expires_at"):
        expires_at = datetime.fromtimestamp(int(payload["expires_at"]), tz=timezone.utc)
    else:
        expires_at = now + timedelta(seconds=int(payload.get("expires_in", 3600)))
    user = payload.get("user") or {}
    return Session(
        access_token=payload["access_token"],
        refresh_token=payload["refresh_token"],
        expires_at=expires_at,
        user_id=user["id"],
        email=user.get("email"),
    )


class AuthClient:
    """Passwordless email-link sign-in against the Supabase auth endpoints."""

    def __init__(self, client: SupabaseClient) -> None:
        self.client = client

    def send_magic_link(self, email: str, redirect_to: Optional[str] = None) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        self.client.post(
            "/auth/v1/otp",
            params=params,
            json={"email": email, "create_user": True},
        )

    def verify(self, email: str, token: str) -> Session:
        """Exchange the emailed one-time token for a session."""
        payload = self.client.post(
            "/auth/v1/verify",
            json={"type": "email", "email": email, "token": token},
        )
        return _session_from_payload(payload)

    def refresh(self, session: Session) -> Session:
        payload = self.client.post(
            "/auth/v1/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": session.refresh_token},
        )
        return _session_from_payload(payload)

    def sign_out(self, session: Session) -> None:
        self.client.post("/auth/v1/logout", token=session.access_token)


class SessionManager:
    """Owns the signed-in session and tells subscribers when it changes.

    The session is established by ``complete_sign_in``, replaced by
    ``refresh`` and dropped by ``sign_out``. Callers pass ``session`` on to the
    stores explicitly.
    """

    def __init__(self, auth: AuthClient, redirect_to: Optional[str] = None) -> None:
        self.auth = auth
        self.redirect_to = redirect_to
        self.session: Optional[Session] = None
        self._listeners: List[SessionListener] = []

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, self.session)
            except Exception:
                logger.exception("Session listener failed on %s", event)

    def request_sign_in(self, email: str) -> None:
        email = email.strip()
        if not email:
            raise ValueError("email is required")
        self.auth.send_magic_link(email, redirect_to=self.redirect_to)
        logger.info("Magic link sent to %s", email)

    def complete_sign_in(self, email: str, token: str) -> Session:
        self.session = self.auth.verify(email.strip(), token.strip())
        logger.info("Signed in as %s", self.session.user_id)
        self._emit(SIGNED_IN)
        return self.session

    def refresh(self) -> Optional[Session]:
        if self.session is None:
            return None
        try:
            self.session = self.auth.refresh(self.session)
        except StoreError:
            logger.warning("Token refresh failed; signing out locally")
            self.session = None
            self._emit(SIGNED_OUT)
            raise
        self._emit(TOKEN_REFRESHED)
        return self.session

    def current(self, now: Optional[datetime] = None) -> Optional[Session]:
        """The live session, renewed first if its token has expired."""
        if self.session is not None and self.session.is_expired(now):
            return self.refresh()
        return self.session

    def sign_out(self) -> None:
        if self.session is None:
            return
        try:
            self.auth.sign_out(self.session)
        except StoreError as exc:
            logger.warning("Remote sign-out failed, dropping session anyway: %s", exc)
        finally:
            self.session = None
        self._emit(SIGNED_OUT)
