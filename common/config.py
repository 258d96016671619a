"""Configuration management for the journal sync client."""

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from common.constants import DEFAULT_CACHE_PATH, STORE_HOST, STORE_PORT, SYNC_INTERVAL_SECONDS

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / '.journal-sync' / 'config.json'


class Config:
    """Manages client configuration stored in a JSON file."""

    DEFAULT_CONFIG = {
        "store_host": STORE_HOST,
        "store_port": STORE_PORT,
        "use_tls": False,
        "api_token": os.environ.get("JOURNAL_API_TOKEN"),
        "timeout": 30,
        "max_retries": 3,
        "retry_backoff_multiplier": 2,
        "cache_path": DEFAULT_CACHE_PATH,
        "sync_interval_seconds": SYNC_INTERVAL_SECONDS,
        "change_poll_interval_seconds": 15,
        "retry_pending_pushes": False,
    }

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (defaults to ~/.journal-sync/config.json)
        """
        self.config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        self.data = self._load()

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        Returns:
            Configuration dictionary
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            self.config_path = Path(tempfile.gettempdir()) / '.journal-sync' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            logger.warning(f"Config directory not writable, using {self.config_path}")

        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                config = self.DEFAULT_CONFIG.copy()
                config.update(data)
                return config
            except (json.JSONDecodeError, IOError) as e:
                backup_path = self.config_path.with_suffix('.json.bak')
                logger.warning(f"Corrupt config file {self.config_path} ({e}), backing up to {backup_path}")
                try:
                    shutil.copy(self.config_path, backup_path)
                except OSError as copy_error:
                    logger.warning(f"Could not back up config file: {copy_error}")
                return self.DEFAULT_CONFIG.copy()
        else:
            config = self.DEFAULT_CONFIG.copy()
            try:
                with open(self.config_path, 'w') as f:
                    json.dump(config, f, indent=2)
            except IOError as e:
                logger.warning(f"Could not write default config: {e}")
            return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
        except IOError as e:
            logger.warning(f"Could not save config: {e}")

    def get_api_token(self) -> Optional[str]:
        """
        Get stored API token.

        Returns:
            Token string or None if not set
        """
        return self.data.get('api_token')

    def set_api_token(self, token: str) -> None:
        """
        Set API token and save to file.

        Args:
            token: Bearer token for the record store
        """
        self.data['api_token'] = token
        self.save()

    def get_base_url(self) -> str:
        """
        Get record store base URL.

        Returns:
            Base URL string (e.g., "http://localhost:8080")
        """
        host = self.data.get('store_host', 'localhost')
        port = self.data.get('store_port', 8080)
        scheme = 'https' if self.data.get('use_tls') else 'http'
        return f"{scheme}://{host}:{port}"

    def get_timeout(self) -> int:
        return self.data.get('timeout', 30)

    def get_retry_config(self) -> dict:
        """
        Get retry configuration.

        Returns:
            Dictionary with 'max_retries' and 'retry_backoff_multiplier'
        """
        return {
            'max_retries': self.data.get('max_retries', 3),
            'retry_backoff_multiplier': self.data.get('retry_backoff_multiplier', 2),
        }

    def get_cache_path(self) -> Path:
        return Path(self.data.get('cache_path') or DEFAULT_CACHE_PATH).expanduser()

    def get_sync_interval(self) -> float:
        return float(self.data.get('sync_interval_seconds', SYNC_INTERVAL_SECONDS))

    def get_change_poll_interval(self) -> float:
        return float(self.data.get('change_poll_interval_seconds', 15))

    def retry_pending_pushes(self) -> bool:
        return bool(self.data.get('retry_pending_pushes', False))
