"""
dbvault daemon - Main entry point.

This module runs the backup scheduler next to the host process:
- Backup loop (SQLite -> encrypted artifact -> S3)
- Cleanup loop (tiered retention over S3)

Usage:
    python -m ops.dbvault.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - Backup failures never terminate the daemon
    - Graceful shutdown cancels the periodic tasks and closes the store

How to change safely:
    - Add new loops to BackupScheduler, not here
    - Test shutdown sequence thoroughly
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import json_log_formatter

from .config import VaultConfig
from .scheduler import BackupScheduler
from .service import BackupService

logger = logging.getLogger(__name__)


def setup_logging(config: VaultConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: dbvault configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("aiobotocore").setLevel(logging.WARNING)


class Daemon:
    """dbvault daemon orchestrator.

    Attributes:
        config: dbvault configuration
        service: Backup operations
        scheduler: Periodic task owner

    Example:
        >>> daemon = Daemon()
        >>> await daemon.start()  # Runs until request_shutdown()
        >>> await daemon.stop()
    """

    def __init__(self, config: VaultConfig | None = None) -> None:
        self.config = config or VaultConfig.from_env()
        self.service = BackupService(self.config)
        self.scheduler = BackupScheduler(self.service, self.config.scheduler)
        self._shutdown_event = asyncio.Event()

    async def start(self) -> None:
        """Start the scheduler and wait for shutdown."""
        logger.info("Starting dbvault daemon")
        self.config.log_config()

        await self.scheduler.start()
        if not self.scheduler.is_running:
            logger.warning("Nothing to do, set ENABLE_SQLITE_BACKUP=true to enable backups")
            return

        await self._shutdown_event.wait()

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        await self.scheduler.stop()
        await self.service.close()
        logger.info("dbvault daemon stopped")

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        self._shutdown_event.set()


def main() -> None:
    """Main entry point."""
    try:
        config = VaultConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    daemon = Daemon(config)

    def handle_signal(sig: int) -> None:
        logger.info(f"Received signal {sig}, initiating shutdown")
        daemon.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        loop.run_until_complete(daemon.start())
    except KeyboardInterrupt:
        pass
    finally:
        loop.run_until_complete(daemon.stop())
        loop.close()


if __name__ == "__main__":
    main()
