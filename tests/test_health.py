from kanban.config import settings


def test_health(client):
    assert client.get("/v1/health").json() == {"status": "ok"}


def test_version(client):
    assert client.get("/v1/version").json() == {"version": settings.APP_VERSION}
