"""Shell entry point."""

import asyncio
import os
import sys

from cli.repl import repl_loop
from common.config import Config
from common.logging_config import setup_logging
from record_store.memory_store import InMemoryRecordStore, InMemoryRecordStoreClient
from replica.local_cache import LocalCache
from replica.session import Session

OFFLINE_AUTHOR_ID = "offline-user"


def build_session(config: Config, offline: bool = False) -> Session:
    """
    Build the session the shell drives.

    In offline mode the record store lives in memory and the Local Cache is
    not written to disk, so the configured cache is never reconciled against
    an empty store.
    """
    if offline:
        client = InMemoryRecordStoreClient(InMemoryRecordStore(), author_id=OFFLINE_AUTHOR_ID)
        return Session.from_config(config, client=client, cache=LocalCache(None))
    return Session.from_config(config)


async def run(offline: bool = False) -> None:
    session = build_session(Config(), offline=offline)
    await session.start()
    try:
        await repl_loop(session)
    finally:
        await session.stop()


def main() -> None:
    """Entry point for the shell."""
    log_level = 'DEBUG' if '--debug' in sys.argv else os.getenv('LOG_LEVEL', 'WARNING')

    logger = setup_logging('cli', log_level=log_level, device_name=os.getenv('JOURNAL_DEVICE_NAME'))

    if '--debug' in sys.argv:
        logger.info("Debug logging enabled")
        sys.argv.remove('--debug')

    offline = '--offline' in sys.argv
    if offline:
        logger.info("Offline mode: using an in-memory record store")
        sys.argv.remove('--offline')

    logger.info("Shell starting...")
    try:
        asyncio.run(run(offline=offline))
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.error(f"Shell error: {e}", exc_info=True)
        raise
    finally:
        logger.info("Shell exiting")


if __name__ == "__main__":
    main()
