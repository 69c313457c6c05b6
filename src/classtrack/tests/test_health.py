# src/classtrack/tests/test_health.py
import pytest

pytestmark = pytest.mark.anyio


async def test_healthz(client):
    r = await client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
