# =============================================================================
# aviation_core/offline/bootstrap.py
# Composition Root - builds and wires the offline stack
# =============================================================================
"""
Everything the offline layer needs is constructed here and passed in
explicitly; no module keeps a global instance. The application builds one
``OfflineStack`` at start-up and calls ``shutdown()`` when it exits.

Usage:
    stack = build_offline_stack()
    stack.service.create(EntityKind.DOCUMENT, {...})
    ...
    stack.shutdown()
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Optional
import logging

from aviation_core.config import Settings, load_settings
from aviation_core.logging import setup_logging
from aviation_core.offline.connection_manager import ConnectionManager
from aviation_core.offline.local_database import LocalDatabase
from aviation_core.offline.pull import PullSynchronizer
from aviation_core.offline.push import PushSynchronizer
from aviation_core.offline.remote import (
    IdentityProvider,
    RemoteBackend,
    StaticIdentityProvider,
    SupabaseBackend,
    SupabaseIdentityProvider,
    create_supabase_client,
)
from aviation_core.offline.sync_engine import SyncEngine
from aviation_core.offline.sync_state import SyncStateTracker
from aviation_core.offline.unified_data_service import OfflineDataService

logger = logging.getLogger(__name__)


@dataclass
class OfflineStack:
    """The wired-up offline layer."""
    settings: Settings
    store: LocalDatabase
    tracker: SyncStateTracker
    connection: ConnectionManager
    engine: SyncEngine
    service: OfflineDataService
    identity: IdentityProvider
    remote: Optional[RemoteBackend] = None

    @property
    def is_demo_mode(self) -> bool:
        return self.remote is None

    def shutdown(self) -> None:
        """Stop background work and close this thread's database connection."""
        self.engine.stop()
        if isinstance(self.identity, SupabaseIdentityProvider):
            self.identity.stop_listening()
        self.connection.stop_monitoring()
        self.store.close()
        logger.info("Offline stack shut down")


def build_offline_stack(
    settings: Optional[Settings] = None,
    *,
    supabase_client: Any = None,
    remote: Optional[RemoteBackend] = None,
    identity: Optional[IdentityProvider] = None,
    probe: Optional[Callable[[], bool]] = None,
    start_monitoring: bool = True,
    start_sync: bool = True,
    configure_logging: bool = False,
) -> OfflineStack:
    """
    Build the offline layer.

    Args:
        settings: Settings to use (default: ``load_settings()``)
        supabase_client: Pre-built Supabase client (default: built from settings)
        remote: Remote backend to use instead of the Supabase adapter
        identity: Identity provider (default: Supabase session, or none in demo mode)
        probe: Connectivity check replacing the socket probe
        start_monitoring: Start the background connectivity monitor
        start_sync: Register for reconnects and sign-ins and run the initial sync pass
        configure_logging: Call ``setup_logging`` with ``settings.log_level``

    Returns:
        OfflineStack
    """
    settings = settings or load_settings()
    if configure_logging:
        setup_logging(settings.log_level)

    store = LocalDatabase(settings.db_path)
    store.initialize()
    tracker = SyncStateTracker(store, max_push_attempts=settings.max_push_attempts)

    if remote is None:
        client = supabase_client or create_supabase_client(settings)
        if client is not None:
            remote = SupabaseBackend(client)
            identity = identity or SupabaseIdentityProvider(client)

    identity = identity or StaticIdentityProvider()

    pusher = puller = None
    if remote is not None:
        pusher = PushSynchronizer(tracker, remote)
        puller = PullSynchronizer(tracker, remote, default_page_size=settings.pull_page_size)
    else:
        logger.info("No remote backend configured; changes stay local until one is")

    connection = ConnectionManager(
        supabase_url="" if remote is None else settings.supabase_url,
        probe=probe,
    )
    engine = SyncEngine(tracker, connection, identity, pusher=pusher, puller=puller)
    service = OfflineDataService(tracker, connection, engine)

    connection.initialize(start_monitoring=start_monitoring)
    if start_sync:
        engine.start()
        if isinstance(identity, SupabaseIdentityProvider):
            identity.start_listening()

    logger.info(
        f"Offline stack ready (online={connection.is_online}, demo={remote is None})"
    )
    return OfflineStack(
        settings=settings,
        store=store,
        tracker=tracker,
        connection=connection,
        engine=engine,
        service=service,
        identity=identity,
        remote=remote,
    )
