import json

import cli


class _Resp:
    def __init__(self, payload, ok=True):
        self._payload = payload
        self.ok = ok

    def json(self):
        return self._payload


def test_reconcile_posts_file_contents(monkeypatch, tmp_path, capsys):
    sent = {}

    def fake_post(url, json=None, auth=None, timeout=None):
        sent.update(url=url, json=json, auth=auth)
        return _Resp({"registered": ["web:agent1-80"]})

    monkeypatch.setattr(cli.requests, "post", fake_post)
    services = [{"id": "web:agent1-80", "name": "web", "agent": "agent1", "port": 80, "check": {"ttl": "30s"}}]
    path = tmp_path / "services.json"
    path.write_text(json.dumps(services), encoding="utf-8")

    rc = cli.main(["--api", "http://csr:8000/", "--user", "admin", "reconcile", "--file", str(path)])

    assert rc == 0
    assert sent == {"url": "http://csr:8000/reconcile", "json": services, "auth": ("admin", "")}
    assert "web:agent1-80" in capsys.readouterr().out


def test_events_failure_returns_nonzero(monkeypatch):
    def fake_get(url, params=None, auth=None, timeout=None):
        assert params == {"limit": 5, "level": "WARN"}
        return _Resp({"detail": "Invalid credentials"}, ok=False)

    monkeypatch.setattr(cli.requests, "get", fake_get)

    assert cli.main(["events", "--limit", "5", "--level", "WARN"]) == 1
