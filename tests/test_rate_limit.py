import pytest

import rate_limit


def test_create_is_rate_limited(make_client, monkeypatch):
    monkeypatch.delenv("DISABLE_RATE_LIMIT")
    monkeypatch.setenv("CREATE_PER_MIN", "2")
    client = make_client()

    for _ in range(2):
        assert client.post("/api/new", json={"content": "x"}).status_code == 200

    response = client.post("/api/new", json={"content": "x"})
    assert response.status_code == 429
    assert response.json() == {"success": False, "message": "Rate limit exceeded", "payload": None}

    # a different client address has its own window
    response = client.post("/api/new", json={"content": "x"}, headers={"X-Real-IP": "10.0.0.9"})
    assert response.status_code == 200


def test_reads_are_not_limited(make_client, monkeypatch):
    monkeypatch.delenv("DISABLE_RATE_LIMIT")
    monkeypatch.setenv("CREATE_PER_MIN", "1")
    client = make_client()
    client.post("/api/new", json={"url": "readme", "content": "x"})
    for _ in range(5):
        assert client.get("/api/readme").status_code == 200


@pytest.mark.parametrize(
    "headers,expected",
    [
        ({"X-Real-IP": "1.2.3.4"}, "1.2.3.4"),
        ({"X-Forwarded-For": "5.6.7.8, 10.0.0.1"}, "5.6.7.8"),
        ({"X-Real-IP": "1.2.3.4:5555"}, "1.2.3.4"),
        ({"X-Real-IP": "2001:db8::1"}, "2001:db8::1"),
    ],
)
def test_ip_address(headers, expected):
    from starlette.requests import Request

    scope = {
        "type": "http",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": ("127.0.0.1", 1234),
    }
    assert rate_limit.get_ip_address(Request(scope)) == expected


def test_invalid_limit_falls_back(monkeypatch):
    monkeypatch.setenv("CREATE_PER_MIN", "zero")
    rate_limit.reset()
    assert rate_limit.get_rate_limit() == rate_limit.DEFAULT_RATE
    monkeypatch.setenv("CREATE_PER_MIN", "-3")
    rate_limit.reset()
    assert rate_limit.get_rate_limit() == rate_limit.DEFAULT_RATE
    rate_limit.reset()


def test_idle_identifiers_are_dropped(monkeypatch):
    import asyncio

    monkeypatch.delenv("DISABLE_RATE_LIMIT")
    rate_limit.reset()
    clock = [1000.0]
    monkeypatch.setattr(rate_limit.time, "time", lambda: clock[0])

    assert asyncio.run(rate_limit.check_and_record_rate_limit(None, "gone-quiet"))
    assert "gone-quiet" in rate_limit._timestamps

    clock[0] += rate_limit.WINDOW_SECONDS * 2
    assert asyncio.run(rate_limit.check_and_record_rate_limit(None, "still-here"))
    assert "gone-quiet" not in rate_limit._timestamps
    assert "still-here" in rate_limit._timestamps
    rate_limit.reset()
