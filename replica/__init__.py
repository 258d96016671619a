"""Local replica of the journal collections and its sync machinery."""

from replica.identity import IdentityResolver
from replica.local_cache import LocalCache
from replica.mutation_gateway import MutationGateway
from replica.profile_store import ProfileStore
from replica.push_queue import PendingPushQueue
from replica.reconciliation import MergeResult, ReconciliationEngine, merge_records
from replica.session import Session
from replica.state import ReplicaState
from replica.sync_manager import SyncManager

__all__ = [
    "IdentityResolver",
    "LocalCache",
    "MutationGateway",
    "ProfileStore",
    "PendingPushQueue",
    "MergeResult",
    "ReconciliationEngine",
    "merge_records",
    "Session",
    "ReplicaState",
    "SyncManager",
]
