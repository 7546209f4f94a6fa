# =============================================================================
# aviation_core/offline/remote.py
# Remote Backend (Supabase) and Identity Provider
# =============================================================================
"""
The sync engine talks to the backend only through ``RemoteBackend``:

    upsert(table, record, on_conflict="id")
    delete(table, record_id)
    select(table, user_id=None, order_by="updated_at", limit=N)  # newest first

Every failure (network, timeout, validation, RLS rejection) is raised as
``RemoteSyncError`` so callers handle a single error type.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional
import logging

from supabase import Client, ClientOptions, create_client

from aviation_core.config import Settings
from aviation_core.errors import RemoteSyncError

logger = logging.getLogger(__name__)


class RemoteBackend(ABC):
    """Per-table upsert / delete / select keyed by primary id."""

    @abstractmethod
    def upsert(self, table: str, record: Dict[str, Any], on_conflict: str = "id") -> None:
        ...

    @abstractmethod
    def delete(self, table: str, record_id: str) -> None:
        ...

    @abstractmethod
    def select(
        self,
        table: str,
        user_id: Optional[str] = None,
        order_by: str = "updated_at",
        limit: int = 1000,
    ) -> List[Dict[str, Any]]:
        ...


def create_supabase_client(settings: Settings) -> Optional[Client]:
    """
    Build a Supabase client from settings.

    Returns:
        Client, or None in demo mode (no real project configured)
    """
    if settings.is_demo_mode:
        return None

    options = ClientOptions(postgrest_client_timeout=settings.request_timeout)
    return create_client(settings.supabase_url, settings.supabase_key, options=options)


class SupabaseBackend(RemoteBackend):
    """RemoteBackend on top of supabase-py's PostgREST query builder."""

    def __init__(self, client: Client):
        self.client = client

    def upsert(self, table: str, record: Dict[str, Any], on_conflict: str = "id") -> None:
        try:
            self.client.table(table).upsert(record, on_conflict=on_conflict).execute()
        except Exception as e:
            raise RemoteSyncError(
                f"Upsert into {table} failed: {e}",
                table=table,
                record_id=record.get("id"),
                operation="upsert",
            ) from e

    def delete(self, table: str, record_id: str) -> None:
        try:
            self.client.table(table).delete().eq("id", record_id).execute()
        except Exception as e:
            raise RemoteSyncError(
                f"Delete from {table} failed: {e}",
                table=table,
                record_id=record_id,
                operation="delete",
            ) from e

    def select(
        self,
        table: str,
        user_id: Optional[str] = None,
        order_by: str = "updated_at",
        limit: int = 1000,
    ) -> List[Dict[str, Any]]:
        try:
            query = self.client.table(table).select("*")
            if user_id:
                query = query.eq("user_id", user_id)
            response = query.order(order_by, desc=True).limit(limit).execute()
        except Exception as e:
            raise RemoteSyncError(
                f"Select from {table} failed: {e}",
                table=table,
                operation="select",
            ) from e
        return response.data or []


# =============================================================================
# IDENTITY
# =============================================================================

class IdentityProvider(ABC):
    """
    Answers "who is signed in?" for scoping sync.

    Listeners registered with ``register_session_callback`` are called with
    the user id whenever a session is established.
    """

    def __init__(self):
        self._session_callbacks: List[Callable[[str], None]] = []

    @abstractmethod
    def current_user_id(self) -> Optional[str]:
        ...

    def register_session_callback(self, callback: Callable[[str], None]) -> None:
        if callback not in self._session_callbacks:
            self._session_callbacks.append(callback)

    def unregister_session_callback(self, callback: Callable[[str], None]) -> None:
        if callback in self._session_callbacks:
            self._session_callbacks.remove(callback)

    def _notify_session_started(self, user_id: str) -> None:
        for callback in list(self._session_callbacks):
            try:
                callback(user_id)
            except Exception as e:
                logger.error(f"Error in session callback: {e}", exc_info=True)


class SupabaseIdentityProvider(IdentityProvider):
    """Reads the user id from the Supabase auth session."""

    def __init__(self, client: Client):
        super().__init__()
        self.client = client
        self._subscription = None

    def current_user_id(self) -> Optional[str]:
        try:
            session = self.client.auth.get_session()
        except Exception as e:
            logger.debug(f"No Supabase session available: {e}")
            return None
        if session is None or session.user is None:
            return None
        return session.user.id

    def start_listening(self) -> None:
        """Subscribe to Supabase auth events."""
        if self._subscription is None:
            self._subscription = self.client.auth.on_auth_state_change(self._on_auth_state_change)

    def stop_listening(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def _on_auth_state_change(self, event: Any, session: Any) -> None:
        if event != "SIGNED_IN" or session is None or session.user is None:
            return
        logger.info("Supabase session established")
        self._notify_session_started(session.user.id)


class StaticIdentityProvider(IdentityProvider):
    """Fixed user id (demo mode, tests, scripts)."""

    def __init__(self, user_id: Optional[str] = None):
        super().__init__()
        self._user_id = user_id

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @user_id.setter
    def user_id(self, value: Optional[str]) -> None:
        previous, self._user_id = self._user_id, value
        if value and value != previous:
            self._notify_session_started(value)

    def current_user_id(self) -> Optional[str]:
        return self._user_id
