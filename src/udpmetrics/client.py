"""StatsD UDP client.

One metric per datagram, ``<key>:<value>|<type>``, sent fire-and-forget:
- The socket is created on the first send and recreated after ``close()``.
  Each new socket starts a fresh in-flight count.
- Every operation returns an ``asyncio.Task`` that resolves to the emitter
  once the OS accepted (or rejected) the datagram. Awaiting it is optional.
- ``close()`` waits up to ``close_grace_s`` for outstanding sends, then
  closes regardless.
"""

from __future__ import annotations

import asyncio
import socket
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Set

from udpmetrics.utils.logging import get_logger

if TYPE_CHECKING:
    from udpmetrics.namespace import NamespaceProxy

logger = get_logger("client")

DEFAULT_PORT = 8125
DEFAULT_CLOSE_GRACE_S = 10.0


class MetricType(str, Enum):
    """StatsD type suffixes."""

    COUNTER = "c"
    GAUGE = "g"
    TIMER = "ms"


def format_packet(key: str, value: Any, metric_type: MetricType) -> str:
    # No validation: delimiters inside key/value end up on the wire as-is
    return f"{key}:{value}|{metric_type.value}"


def _udp_socket() -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.setblocking(False)
    return sock


def _mark_retrieved(task: asyncio.Task) -> None:
    # Failures are already logged; callers that never await should not get
    # "Task exception was never retrieved" on top.
    if not task.cancelled():
        task.exception()


class MetricsClient:
    """Emit counters, gauges and timers to a StatsD aggregator over UDP."""

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        *,
        close_grace_s: float = DEFAULT_CLOSE_GRACE_S,
        socket_factory: Callable[[], socket.socket] = _udp_socket,
    ) -> None:
        self._host = host
        self._port = port
        self.close_grace_s = close_grace_s
        self._socket_factory = socket_factory
        self._sock: socket.socket | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._in_flight = 0
        self._close_timer: asyncio.TimerHandle | None = None
        self._pending: Set[asyncio.Task] = set()

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def closed(self) -> bool:
        return self._sock is None

    @property
    def socket(self) -> socket.socket:
        """Current socket, created on demand. A new socket resets ``in_flight``."""
        if self._sock is None:
            self._in_flight = 0
            self._sock = self._socket_factory()
            self._loop = asyncio.get_running_loop()
            logger.debug("StatsD socket created", host=self._host, port=self._port)
        return self._sock

    def space(self, prefix: str) -> NamespaceProxy:
        from udpmetrics.namespace import NamespaceProxy

        return NamespaceProxy(self, prefix)

    # ── Metrics ───────────────────────────────────────────────────────────

    def count(self, key: str, value: Any = 1) -> asyncio.Task:
        """Counter delta, e.g. DB updates over the flush interval."""
        return self._send(key, value, MetricType.COUNTER)

    def gauge(self, key: str, value: Any) -> asyncio.Task:
        """Point-in-time measurement, e.g. CPU load."""
        return self._send(key, value, MetricType.GAUGE)

    def timer(self, key: str, value: Any) -> asyncio.Task:
        """Duration of an operation in milliseconds."""
        return self._send(key, value, MetricType.TIMER)

    # ── Shutdown ──────────────────────────────────────────────────────────

    def close(self, force: bool = False) -> None:
        """Close the socket.

        With sends still in flight and ``force`` unset, a forced close is
        scheduled ``close_grace_s`` seconds out instead. That deferred close
        does not re-check ``in_flight``.
        """
        if self._sock is None:
            return
        if self._in_flight > 0 and not force:
            if self._close_timer is None:
                loop = self._loop or asyncio.get_running_loop()
                self._close_timer = loop.call_later(self.close_grace_s, self._close_after_grace)
                logger.info(
                    "StatsD close deferred",
                    in_flight=self._in_flight,
                    grace_s=self.close_grace_s,
                )
            return
        if self._close_timer is not None:
            self._close_timer.cancel()
            self._close_timer = None
        self._sock.close()
        self._sock = None
        logger.debug("StatsD socket closed", host=self._host, port=self._port, in_flight=self._in_flight)

    def _close_after_grace(self) -> None:
        self._close_timer = None
        self.close(force=True)

    # ── Send path ─────────────────────────────────────────────────────────

    def _send(self, key: str, value: Any, metric_type: MetricType) -> asyncio.Task:
        loop = asyncio.get_running_loop()
        # Encoded before anything is counted; any str goes out as UTF-8
        payload = format_packet(key, value, metric_type).encode("utf-8", "surrogatepass")
        sock = self.socket
        self._in_flight += 1
        task = loop.create_task(self._dispatch(sock, payload, key))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        task.add_done_callback(_mark_retrieved)
        return task

    async def _dispatch(self, sock: socket.socket, payload: bytes, key: str) -> MetricsClient:
        try:
            await asyncio.get_running_loop().sock_sendto(sock, payload, (self._host, self._port))
        except OSError as exc:
            logger.warning(
                "StatsD send failed",
                key=key,
                host=self._host,
                port=self._port,
                error=str(exc),
            )
            raise
        finally:
            # Sends from a previous socket may land after the reset
            self._in_flight = max(0, self._in_flight - 1)
        return self
