import asyncio


class FakeSocket:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


class SocketFactory:
    """Hands out FakeSockets and remembers them."""

    def __init__(self):
        self.created = []

    def __call__(self):
        sock = FakeSocket()
        self.created.append(sock)
        return sock


class RecordingLogger:
    def __init__(self):
        self.records = []

    def _record(self, level, event, **kw):
        self.records.append((level, event, kw))

    def debug(self, event, **kw):
        self._record("debug", event, **kw)

    def info(self, event, **kw):
        self._record("info", event, **kw)

    def warning(self, event, **kw):
        self._record("warning", event, **kw)


class Transport:
    """Stand-in for loop.sock_sendto.

    Records every datagram. ``hold()`` makes later sends wait until
    ``release()``; ``fail_with`` makes them raise.
    """

    def __init__(self):
        self.sent = []
        self.fail_with = None
        self._gate = None

    def hold(self):
        self._gate = asyncio.Event()

    def release(self):
        if self._gate is not None:
            self._gate.set()

    async def sock_sendto(self, sock, data, address):
        self.sent.append((data, address))
        if self._gate is not None:
            await self._gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        return len(data)

    def payloads(self):
        return [data.decode("ascii") for data, _ in self.sent]


def install_transport(monkeypatch) -> Transport:
    transport = Transport()
    monkeypatch.setattr(asyncio.get_running_loop(), "sock_sendto", transport.sock_sendto)
    return transport
