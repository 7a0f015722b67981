import json

import pytest

from csr.agents import AgentClient
from csr.models import HealthCheck, Registration, Status
from csr.upstreams import BackendStore, agent_from_id, upstream_key


@pytest.fixture
def client(catalog_config, transport):
    c = AgentClient("agent1", catalog_config, transport=transport)
    yield c
    c.close()


@pytest.mark.parametrize(
    "service_id,expected",
    [
        ("web-1:agentA-3", "agentA"),
        ("web:agent1", "agent1"),
        ("web:10.0.0.7-31000:extra", "10.0.0.7"),
        ("no-separator", None),
    ],
)
def test_agent_from_id(service_id, expected):
    assert agent_from_id(service_id) == expected


def test_upsert_writes_fixed_backend_value(fake_consul, journal, client):
    store = BackendStore(journal)

    res = store.upsert("web", "agent1", 80, client)

    assert res.is_ok
    assert json.loads(fake_consul.kv["upstreams/web/agent1:80"]) == {"weight": 1, "max_fails": 2, "fail_timeout": 10}
    assert fake_consul.calls("PUT", "/v1/kv/")[0].url.params["cas"] == "0"


def test_upsert_existing_key_is_ok_and_not_overwritten(fake_consul, journal, client):
    fake_consul.kv[upstream_key("web", "agent1", 80)] = b'{"weight":5}'
    store = BackendStore(journal)

    res = store.upsert("web", "agent1", 80, client)

    assert res.is_ok
    assert fake_consul.kv["upstreams/web/agent1:80"] == b'{"weight":5}'
    assert any("already exists" in e["message"] for e in journal.latest(level="DEBUG"))


def test_upsert_transport_failure_is_recoverable(fake_consul, journal, client):
    fake_consul.fail_kv = True

    res = BackendStore(journal).upsert("web", "agent1", 80, client)

    assert res.status is Status.RECOVERABLE
    assert res.error.startswith("Unable to CAS key upstreams/web/agent1:80")


def test_remove_uses_agent_parsed_from_id(fake_consul, journal, client):
    fake_consul.kv["upstreams/web/agentA:80"] = b"{}"
    fake_consul.kv["upstreams/web/agentA-3:80"] = b"{}"
    reg = Registration(id="web-1:agentA-3", name="web", port=80, address="", check=HealthCheck(ttl="30s"))

    res = BackendStore(journal).remove(reg, client)

    assert res.is_ok
    assert "upstreams/web/agentA:80" not in fake_consul.kv
    assert "upstreams/web/agentA-3:80" in fake_consul.kv


def test_remove_falls_back_to_stored_agent(fake_consul, journal, client):
    fake_consul.kv["upstreams/web/agent9:80"] = b"{}"
    reg = Registration(id="plainid", name="web", port=80, address="", check=HealthCheck(ttl="30s"))

    res = BackendStore(journal).remove(reg, client, fallback_agent="agent9")

    assert res.is_ok
    assert fake_consul.kv == {}


def test_upsert_escapes_reserved_characters_in_key(fake_consul, journal, client):
    res = BackendStore(journal).upsert("we#b", "agent1", 80, client)

    assert res.is_ok
    assert list(fake_consul.kv) == ["upstreams/we#b/agent1:80"]
    assert fake_consul.requests[-1].url.params["cas"] == "0"
