# =============================================================================
# aviation_core/offline/__init__.py
# Offline-First Store and Sync for the Pilot App
# =============================================================================
"""
Offline-First Architecture Module

The app reads and writes only the local store. A sync engine pushes local
edits and pulls recent remote data whenever the backend is reachable.

Architecture:
------------
┌─────────────────────────────────────────────────────────────────┐
│                    OFFLINE-FIRST ARCHITECTURE                    │
├─────────────────────────────────────────────────────────────────┤
│                                                                  │
│   ┌──────────────────────────────────────────────────────────┐  │
│   │                 OfflineDataService                        │  │
│   │         (Single API - the UI uses this only)              │  │
│   └──────────────────────────────────────────────────────────┘  │
│                            │                                     │
│              ┌─────────────┴─────────────┐                      │
│              ▼                           ▼                      │
│   ┌──────────────────┐        ┌──────────────────┐             │
│   │ SyncStateTracker │        │  ConnectionMgr   │             │
│   │ (needs_sync etc.)│        │ (Online/Offline) │             │
│   └──────────────────┘        └──────────────────┘             │
│              │                           │                       │
│              ▼                           ▼                       │
│ ┌──────────────────┐          ┌──────────────────┐             │
│ │  LocalDatabase   │◄────────►│   SyncEngine     │             │
│ │    (SQLite)      │          │ push ► pull      │             │
│ └──────────────────┘          └──────────────────┘             │
│                                          │                       │
│                                          ▼                       │
│                               ┌──────────────────┐             │
│                               │ Supabase (Cloud) │             │
│                               └──────────────────┘             │
└─────────────────────────────────────────────────────────────────┘

Usage:
------
from aviation_core.offline import build_offline_stack

stack = build_offline_stack()
service = stack.service

service.create(EntityKind.PLACE, {"user_id": uid, "name": "Noodle bar"})
print(service.is_online)            # True/False
print(service.pending_sync_count)   # Records waiting to be pushed
"""

from aviation_core.offline.connection_manager import (
    ConnectionManager,
    ConnectionState,
    ConnectionStatus,
)

from aviation_core.offline.local_database import LocalDatabase

from aviation_core.offline.sync_state import (
    SyncStateTracker,
    utc_now,
)

from aviation_core.offline.remote import (
    RemoteBackend,
    SupabaseBackend,
    create_supabase_client,
    IdentityProvider,
    SupabaseIdentityProvider,
    StaticIdentityProvider,
)

from aviation_core.offline.push import PushSynchronizer, PushResult
from aviation_core.offline.pull import PullSynchronizer, PullResult

from aviation_core.offline.sync_engine import (
    SyncEngine,
    SyncState,
    SyncReport,
)

from aviation_core.offline.unified_data_service import OfflineDataService

from aviation_core.offline.bootstrap import (
    OfflineStack,
    build_offline_stack,
)

__all__ = [
    # Connection Management
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStatus",
    # Local Database
    "LocalDatabase",
    "SyncStateTracker",
    "utc_now",
    # Remote
    "RemoteBackend",
    "SupabaseBackend",
    "create_supabase_client",
    "IdentityProvider",
    "SupabaseIdentityProvider",
    "StaticIdentityProvider",
    # Synchronizers
    "PushSynchronizer",
    "PushResult",
    "PullSynchronizer",
    "PullResult",
    # Sync Engine
    "SyncEngine",
    "SyncState",
    "SyncReport",
    # Main API
    "OfflineDataService",
    "OfflineStack",
    "build_offline_stack",
]
