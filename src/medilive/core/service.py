# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2024 Scipp contributors (https://github.com/scipp)
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
from abc import ABC, abstractmethod
from typing import Any

from .logging import configure_logging


class ServiceBase(ABC):
    """
    Base class for long-running services on an asyncio event loop.

    The service runs until :py:meth:`stop` is called or SIGTERM/SIGINT is received.
    """

    def __init__(self, *, name: str | None = None, log_level: int = logging.INFO):
        self._logger = logging.getLogger(name or __name__)
        self._setup_logging(log_level)
        self._running = False
        self._stop_event: asyncio.Event | None = None

    def _setup_logging(self, log_level: int) -> None:
        """Configure logging for this service instance if not already configured"""
        configure_logging(log_level)
        self._logger.setLevel(log_level)

    @property
    def is_running(self) -> bool:
        return self._running

    def run(self) -> None:
        """Start the service and block until stopped"""
        asyncio.run(self.run_async())

    async def run_async(self) -> None:
        self._stop_event = asyncio.Event()
        self._setup_signal_handlers()
        self._logger.info("Starting service...")
        self._running = True
        try:
            await self._start_impl()
            self._logger.info("Service started")
            await self._stop_event.wait()
        finally:
            self._logger.info("Stopping service...")
            await self._stop_impl()
            self._remove_signal_handlers()
            self._running = False
            self._logger.info("Service stopped")

    def stop(self) -> None:
        """Request the service to stop gracefully"""
        if self._stop_event is not None:
            self._stop_event.set()

    def _setup_signal_handlers(self) -> None:
        """Setup handlers for graceful shutdown"""
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(signum, self._handle_shutdown, signum)
            except (NotImplementedError, RuntimeError):
                # Not supported on this platform or outside the main thread.
                self._logger.debug("Cannot register handler for signal %d", signum)
        self._logger.info("Registered signal handlers")

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.remove_signal_handler(signum)
            except (NotImplementedError, RuntimeError):
                self._logger.debug("Cannot remove handler for signal %d", signum)

    def _handle_shutdown(self, signum: int) -> None:
        """Handle shutdown signals"""
        self._logger.info("Received signal %d, initiating shutdown...", signum)
        self.stop()

    @abstractmethod
    async def _start_impl(self) -> None:
        """Start the service implementation"""

    @abstractmethod
    async def _stop_impl(self) -> None:
        """Stop the service implementation"""

    @staticmethod
    def setup_arg_parser(description: str) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            description=description,
            formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        )
        parser.add_argument(
            '--log-level',
            choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
            default='INFO',
            help='Set the logging level',
        )
        parser.add_argument(
            '--log-dir',
            default=None,
            help='Directory to additionally collect log files in',
        )
        return parser


def get_env_defaults(
    *, parser: argparse.ArgumentParser, prefix: str = 'MEDILIVE'
) -> dict[str, Any]:
    """Get defaults from environment variables based on parser arguments."""
    env_defaults = {}
    for action in parser._actions:
        if action.dest == 'help':
            continue
        # Convert --arg-name to MEDILIVE_ARG_NAME
        env_name = f"{prefix}_{action.dest.upper().replace('-', '_')}"
        env_val = os.getenv(env_name)
        if env_val is not None:
            if isinstance(action.default, bool):
                env_defaults[action.dest] = env_val.lower() in ('true', '1', 'yes')
            elif isinstance(action.default, int):
                env_defaults[action.dest] = int(env_val)
            elif isinstance(action.default, float):
                env_defaults[action.dest] = float(env_val)
            else:
                env_defaults[action.dest] = env_val
    return env_defaults
