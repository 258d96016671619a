"""Shared pytest fixtures for all tests."""

from datetime import datetime, timedelta, timezone

import pytest

from common.config import Config
from common.types import Payload, Record, RecordKind
from record_store.memory_store import InMemoryRecordStore, InMemoryRecordStoreClient
from replica.local_cache import LocalCache

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    """Fixed timestamp T0 + minutes."""
    return T0 + timedelta(minutes=minutes)


def make_record(
    record_id: str,
    last_modified: int = 0,
    created: int = 0,
    remote_ref: str | None = None,
    author_id: str | None = "u1",
    kind: RecordKind = RecordKind.REGULAR,
    owner_label: str = "Alice",
    **fields,
) -> Record:
    """Build a record with timestamps given as minutes after T0."""
    if not fields:
        fields = {"name": "reading"} if kind == RecordKind.ACTIVITY else {"activity": "reading"}
    return Record(
        id=record_id,
        kind=kind,
        owner_label=owner_label,
        payload=Payload(fields=fields),
        created_at=at(created),
        last_modified=at(last_modified),
        author_id=author_id,
        remote_ref=remote_ref,
    )


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .journal-sync directory
    """
    config_dir = tmp_path / '.journal-sync'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance whose cache lives in the temp dir.

    Returns:
        Config instance with temp config file
    """
    config = Config(temp_config_dir / 'config.json')
    config.data['cache_path'] = str(temp_config_dir / 'replica.json')
    return config


@pytest.fixture
def cache_path(tmp_path):
    return tmp_path / 'replica.json'


@pytest.fixture
def cache(cache_path):
    """Local cache backed by a temp file."""
    return LocalCache(str(cache_path))


@pytest.fixture
def store():
    """Shared in-memory record store."""
    return InMemoryRecordStore()


@pytest.fixture
def client(store):
    """Device client signed in as u1."""
    return InMemoryRecordStoreClient(store, author_id="u1")


@pytest.fixture(name='make_record')
def make_record_fixture():
    """Factory building records with minute-offset timestamps."""
    return make_record


@pytest.fixture(name='at')
def at_fixture():
    """Timestamp factory: at(n) is T0 + n minutes."""
    return at
