def test_health_endpoint(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body.get("status") == "ok"
    assert body.get("version")


def test_sources_lists_configured_sites(client):
    r = client.get("/sources")
    assert r.status_code == 200
    assert r.json() == {
        "success": True,
        "data": [
            {"key": "s1", "name": "Site One"},
            {"key": "s2", "name": "Site Two"},
        ],
    }
