"""Remote record store clients, wire schemas and change notifications."""

from record_store.base import RecordStoreClient
from record_store.change_feed import ChangeFeed, ChangeSubscription
from record_store.http_client import HttpRecordStoreClient
from record_store.memory_store import InMemoryRecordStore, InMemoryRecordStoreClient

__all__ = [
    'RecordStoreClient',
    'ChangeFeed',
    'ChangeSubscription',
    'HttpRecordStoreClient',
    'InMemoryRecordStore',
    'InMemoryRecordStoreClient',
]
