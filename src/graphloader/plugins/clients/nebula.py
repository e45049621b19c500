# src/graphloader/plugins/clients/nebula.py
"""StatementExecutor backed by the nebula3-python connection pool.

Install with: pip install "graphloader[nebula]"
"""

from __future__ import annotations

import threading
from typing import Any

from graphloader.contracts import GraphWriteError
from graphloader.core.config import GraphSettings
from graphloader.core.logging import get_logger

logger = get_logger(__name__)


class NebulaExecutor:
    """Runs statements through a nebula3 ConnectionPool.

    Sessions are not thread-safe, so each worker thread gets its own
    session, created on first use and bound to the configured space.
    """

    def __init__(self, settings: GraphSettings) -> None:
        try:
            from nebula3.Config import Config
            from nebula3.gclient.net import ConnectionPool
        except ImportError as e:
            raise ImportError(
                f"nebula3-python not installed: {e}. Install with: pip install 'graphloader[nebula]'"
            ) from e

        self._settings = settings
        config = Config()
        config.max_connection_pool_size = settings.pool_size

        hosts = []
        for address in settings.addresses:
            host, _, port = address.rpartition(":")
            hosts.append((host, int(port)))

        self._pool = ConnectionPool()
        if not self._pool.init(hosts, config):
            raise ConnectionError(f"Could not connect to graph services at {', '.join(settings.addresses)}")

        self._local = threading.local()
        self._sessions: list[Any] = []
        self._lock = threading.Lock()
        logger.debug("Nebula connection pool ready", addresses=settings.addresses, pool_size=settings.pool_size)

    def _session(self) -> Any:
        session = getattr(self._local, "session", None)
        if session is not None:
            return session

        session = self._pool.get_session(self._settings.user, self._settings.password)
        statement = f"USE `{self._settings.space}`"
        try:
            result = session.execute(statement)
        except BaseException:
            session.release()
            raise
        if not result.is_succeeded():
            # Only a session bound to the space is reused; the next attempt opens a fresh one
            session.release()
            raise GraphWriteError(statement, result.error_msg())

        with self._lock:
            self._sessions.append(session)
        self._local.session = session
        return session

    def execute(self, statement: str) -> None:
        from nebula3.Exception import IOErrorException

        try:
            result = self._session().execute(statement)
        except IOErrorException as e:
            # Connection-level failures are retryable like store rejections
            raise GraphWriteError(statement, str(e)) from e
        if not result.is_succeeded():
            raise GraphWriteError(statement, result.error_msg())

    def close(self) -> None:
        with self._lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.release()
        self._pool.close()
