"""Public API surface for campusbets backend clients."""

from .auth import AuthClient, SessionManager
from .supabase_client import DuplicateKeyError, NotFoundError, StoreError, StoreTimeout, SupabaseClient

__all__ = [
    "AuthClient",
    "DuplicateKeyError",
    "NotFoundError",
    "SessionManager",
    "StoreError",
    "StoreTimeout",
    "SupabaseClient",
]
