"""Dotted key prefixes over a MetricsClient."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Union

from udpmetrics.client import _mark_retrieved

if TYPE_CHECKING:
    from udpmetrics.client import MetricsClient

SEPARATOR = "."


class NamespaceProxy:
    """Prefixes every key with ``prefix`` and delegates to ``parent``.

    ``prefix`` is normalized once, here, to end with a single separator.
    """

    def __init__(self, parent: Union[MetricsClient, NamespaceProxy], prefix: str) -> None:
        self.parent = parent
        if not prefix.endswith(SEPARATOR):
            prefix += SEPARATOR
        self.prefix = prefix

    def __repr__(self) -> str:
        return f"NamespaceProxy(prefix={self.prefix!r})"

    def space(self, prefix: str) -> NamespaceProxy:
        return NamespaceProxy(self.parent, self.prefix + prefix)

    def count(self, key: str, value: Any = 1) -> asyncio.Task:
        return self._chain(self.parent.count(self.prefix + key, value))

    def gauge(self, key: str, value: Any) -> asyncio.Task:
        return self._chain(self.parent.gauge(self.prefix + key, value))

    def timer(self, key: str, value: Any) -> asyncio.Task:
        return self._chain(self.parent.timer(self.prefix + key, value))

    def close(self, force: bool = False) -> None:
        self.parent.close(force)

    def _chain(self, sent: asyncio.Task) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._resolve(sent))
        task.add_done_callback(_mark_retrieved)
        return task

    async def _resolve(self, sent: asyncio.Task) -> NamespaceProxy:
        await sent
        return self
