"""Unit tests for HealthService"""

from notecollab.core.services import HealthService
from notecollab.core.services import health_service as hs


class FakeRedis:
    def __init__(self, fail=False):
        self.fail = fail
        self.closed = False

    async def ping(self):
        if self.fail:
            raise ConnectionError("redis down")
        return True

    async def aclose(self):
        self.closed = True


async def test_health_ok(test_session, monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(hs.redis, "from_url", lambda url: fake)

    status = await HealthService(test_session).get_health_status()

    assert status.status == "healthy"
    assert status.checks["database"]["connected"] is True
    assert status.checks["redis"]["connected"] is True
    assert fake.closed is True


async def test_health_degraded_without_redis(test_session, monkeypatch):
    monkeypatch.setattr(hs.redis, "from_url", lambda url: FakeRedis(fail=True))

    status = await HealthService(test_session).get_health_status()

    assert status.status == "degraded"
    assert status.checks["redis"]["error"] == "redis down"


async def test_health_unhealthy_without_database(test_session, monkeypatch):
    monkeypatch.setattr(hs.redis, "from_url", lambda url: FakeRedis())

    async def broken_execute(*args, **kwargs):
        raise RuntimeError("db down")

    monkeypatch.setattr(test_session, "execute", broken_execute)

    status = await HealthService(test_session).get_health_status()

    assert status.status == "unhealthy"
    assert status.checks["database"]["connected"] is False
