"""
cewallet - encrypted local wallet store.

Entry point for applications embedding the store: applies settings,
logging and log retention, then hands back a locked Store.
"""

import logging
from pathlib import Path
from typing import Optional

from .models.store import Store
from .services.logging import cleanup_old_logs, configure_logging
from .utils import get_store_path, load_settings
from .wallet.crypto import kdf_from_settings

logger = logging.getLogger(__name__)


def open_store(path: Optional[str | Path] = None, settings: Optional[dict] = None) -> Store:
    """
    Build the application's Store from settings.json.

    Settings used:
        store_path: store file location (default ~/.cew/wallets.json)
        kdf: KDF block for new stores (default Argon2id)
        log_level: logging level name (default INFO)
        log_to_file: write the daily log file
        log_retention_days: delete older log files (0 = keep all)
    """
    if settings is None:
        settings = load_settings()

    # Configure logging before anything else
    level = logging.getLevelName(str(settings.get("log_level", "INFO")).upper())
    configure_logging(level if isinstance(level, int) else logging.INFO,
                      log_to_file=bool(settings.get("log_to_file", False)))

    retention = int(settings.get("log_retention_days", 0))
    if retention > 0:
        deleted = cleanup_old_logs(retention)
        if deleted > 0:
            logger.info(f"Deleted {deleted} old log file(s)")

    store_path = Path(path) if path else get_store_path(settings)
    return Store(store_path, kdf=kdf_from_settings(settings))
