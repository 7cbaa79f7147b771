"""End-to-end over a real localhost UDP socket."""
import asyncio

import pytest

from udpmetrics.client import MetricsClient
from udpmetrics.timing import timed


class _Collector(asyncio.DatagramProtocol):
    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()

    def datagram_received(self, data, addr):
        self.queue.put_nowait(data.decode("ascii"))


async def _collect(queue: asyncio.Queue, n: int) -> list:
    return [await asyncio.wait_for(queue.get(), timeout=2.0) for _ in range(n)]


@pytest.mark.asyncio
async def test_metrics_reach_udp_listener():
    loop = asyncio.get_running_loop()
    transport, collector = await loop.create_datagram_endpoint(_Collector, local_addr=("127.0.0.1", 0))
    port = transport.get_extra_info("sockname")[1]
    client = MetricsClient("127.0.0.1", port)
    try:
        await asyncio.gather(
            client.count("requests"),
            client.gauge("cpu.load", 0.73),
            client.space("api").timer("latency", 42),
        )
        async with timed(client.space("jobs"), "run") as watch:
            await asyncio.sleep(0.01)
        await watch.pending

        received = await _collect(collector.queue, 4)
    finally:
        client.close()
        transport.close()

    assert sorted(received[:3]) == ["api.latency:42|ms", "cpu.load:0.73|g", "requests:1|c"]
    assert received[3].startswith("jobs.run:") and received[3].endswith("|ms")
    assert client.in_flight == 0
    assert client.closed


@pytest.mark.asyncio
async def test_send_on_force_closed_socket_fails_without_breaking_client():
    loop = asyncio.get_running_loop()
    transport, collector = await loop.create_datagram_endpoint(_Collector, local_addr=("127.0.0.1", 0))
    port = transport.get_extra_info("sockname")[1]
    client = MetricsClient("127.0.0.1", port)
    try:
        doomed = client.count("doomed")
        client.close(force=True)
        with pytest.raises(OSError):
            await doomed
        assert client.in_flight == 0

        await client.count("after")
        assert await _collect(collector.queue, 1) == ["after:1|c"]
    finally:
        client.close(force=True)
        transport.close()
