"""Project-wide constants (cache keys, sync intervals, remote store defaults)."""

import os

ENTRIES_CACHE_KEY: str = "entries"
ACTIVITIES_CACHE_KEY: str = "activities"
PROFILE_CACHE_KEY: str = "profile"
PENDING_PUSHES_KEY_PREFIX: str = "pending_pushes:"

DEFAULT_CACHE_PATH: str = os.path.join(os.path.expanduser("~"), ".journal-sync", "replica.json")

SYNC_INTERVAL_SECONDS: int = int(os.getenv("JOURNAL_SYNC_INTERVAL", "60"))

STORE_HOST: str = os.environ.get("JOURNAL_STORE_HOST", "localhost")
STORE_PORT: int = int(os.environ.get("JOURNAL_STORE_PORT", "8080"))

SUBSCRIPTION_ID: str = "journal-records-changed"

DEFAULT_ATTACHMENT_CONTENT_TYPE: str = "image/jpeg"
