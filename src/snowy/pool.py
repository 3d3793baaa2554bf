"""Pooled requests sessions cached by configuration fingerprint."""

from __future__ import annotations

import logging
import threading
import time
from typing import Mapping

import requests
from requests.adapters import HTTPAdapter

from .config import Config

logger = logging.getLogger(__name__)

# urllib3 rejects a zero timeout; an exhausted budget still times out fast.
MIN_TIMEOUT_SECONDS = 0.001


class PooledClient:
    """A requests.Session wired to the transport limits of one Config.

    The session and its connection pools are safe to share between threads.
    Idle connections are dropped once the client has not been used for
    longer than the idle-connection timeout.
    """

    def __init__(self, config: Config) -> None:
        self.timeout_seconds = config.timeout_seconds
        self.max_idle_connections = config.max_idle_connections
        self.idle_connection_timeout_seconds = (
            config.idle_connection_timeout_seconds
        )
        self.tls_handshake_timeout_seconds = (
            config.tls_handshake_timeout_seconds
        )

        self.session = requests.Session()
        adapter = HTTPAdapter(
            pool_connections=self.max_idle_connections,
            pool_maxsize=self.max_idle_connections,
        )
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        self._lock = threading.Lock()
        self._last_used: float | None = None

    def resolve_timeout(
        self, remaining: float | None = None
    ) -> tuple[float, float]:
        """Return the (connect, read) timeout for one request.

        The TLS handshake happens inside the connect phase, so its limit caps
        the connect timeout. ``remaining`` caps both with the call deadline.
        """
        read_timeout = self.timeout_seconds
        if remaining is not None:
            read_timeout = min(read_timeout, remaining)
        read_timeout = max(read_timeout, MIN_TIMEOUT_SECONDS)
        connect_timeout = min(self.tls_handshake_timeout_seconds, read_timeout)
        return (connect_timeout, read_timeout)

    def _expire_idle_connections(self) -> None:
        now = time.monotonic()
        with self._lock:
            last_used = self._last_used
            self._last_used = now
        if (
            last_used is not None
            and now - last_used > self.idle_connection_timeout_seconds
        ):
            logger.debug(
                "dropping idle connections after %.1fs",
                now - last_used,
            )
            # Adapters stay usable after close(); pools are rebuilt lazily.
            for adapter in self.session.adapters.values():
                adapter.close()

    def prepare(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes | None,
    ) -> requests.PreparedRequest:
        request = requests.Request(
            method=method,
            url=url,
            headers=dict(headers),
            data=body,
        )
        return self.session.prepare_request(request)

    def send(
        self,
        prepared: requests.PreparedRequest,
        timeout: tuple[float, float],
    ) -> requests.Response:
        """Send a prepared request; the body is left unread."""
        self._expire_idle_connections()
        return self.session.send(
            prepared,
            timeout=timeout,
            stream=True,
            allow_redirects=True,
        )

    def close(self) -> None:
        self.session.close()


class ClientPool:
    """Cache of PooledClient instances keyed by Config.fingerprint().

    Entries are never evicted. Two threads missing on the same fingerprint
    may each build a client; the last one stored wins and the other is
    discarded.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._clients: dict[str, PooledClient] = {}

    def get_client(self, config: Config) -> PooledClient:
        """Return the pooled client for ``config``.

        Zero-valued fields are defaulted first, so ``Config()`` and a config
        spelling out the defaults share one client.
        """
        config = config.with_defaults()
        key = config.fingerprint()
        with self._lock:
            client = self._clients.get(key)
        if client is not None:
            return client

        logger.debug("creating pooled client for fingerprint %s", key)
        client = PooledClient(config)
        with self._lock:
            self._clients[key] = client
        return client

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)

    def close(self) -> None:
        """Close every pooled client and empty the cache."""
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            client.close()
