"""Shared fixtures: gateway instances coordinating through one fake Redis server."""
import fakeredis
import pytest

from backend import RedisBackend
from gateway import ChatGateway


@pytest.fixture
def redis_server():
    return fakeredis.FakeServer()


@pytest.fixture
def make_backend(redis_server):
    def factory(**kwargs):
        kwargs.setdefault("timeout", 1.0)
        client = fakeredis.FakeAsyncRedis(server=redis_server, decode_responses=True)
        return RedisBackend(client, **kwargs)
    return factory


@pytest.fixture
def backend(make_backend):
    return make_backend()


@pytest.fixture
async def make_gateway(make_backend):
    """Start gateway instances sharing one store; all are stopped at teardown."""
    gateways = []

    async def factory(server_id="test"):
        gateway = ChatGateway(make_backend(), server_id=server_id)
        await gateway.start()
        gateways.append(gateway)
        return gateway

    yield factory

    for gateway in gateways:
        await gateway.stop()
