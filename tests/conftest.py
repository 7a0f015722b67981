import json
import os
import sys
import tempfile

import httpx
import pytest

# main.py builds its module-level app on import; keep its journal out of the working tree.
os.environ.setdefault("CSR_DB_PATH", os.path.join(tempfile.mkdtemp(prefix="csr-test-"), "csr.db"))

# Ensure project root is importable (so `import csr` / `import main` work without installing)
_project_root = os.path.dirname(os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from csr.db import EventJournal  # noqa: E402
from csr.models import HealthCheck, Service  # noqa: E402
from csr.reconciler import Reconciler  # noqa: E402
from csr.settings import CatalogConfig  # noqa: E402


class FakeConsul:
    """In-memory stand-in for the agent HTTP API, shared by every agent address."""

    def __init__(self):
        self.services: dict[str, dict] = {}
        self.kv: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []
        self.fail_register: set[str] = set()
        self.fail_deregister: set[str] = set()
        self.fail_kv = False
        self.down_agents: set[str] = set()

    def calls(self, method: str, prefix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path.startswith(prefix)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host in self.down_agents:
            raise httpx.ConnectError("connection refused", request=request)

        path = request.url.path
        if request.method == "PUT" and path == "/v1/agent/service/register":
            body = json.loads(request.content)
            if body["ID"] in self.fail_register:
                return httpx.Response(500, text="register failed")
            self.services[body["ID"]] = body
            return httpx.Response(200)

        if request.method == "PUT" and path.startswith("/v1/agent/service/deregister/"):
            service_id = path[len("/v1/agent/service/deregister/"):]
            if service_id in self.fail_deregister:
                return httpx.Response(500, text="deregister failed")
            self.services.pop(service_id, None)
            return httpx.Response(200)

        if path.startswith("/v1/kv/"):
            key = path[len("/v1/kv/"):]
            if self.fail_kv:
                return httpx.Response(500, text="kv unavailable")
            if request.method == "PUT":
                if request.url.params.get("cas") == "0" and key in self.kv:
                    return httpx.Response(200, json=False)
                self.kv[key] = request.content
                return httpx.Response(200, json=True)
            if request.method == "DELETE":
                self.kv.pop(key, None)
                return httpx.Response(200, json=True)

        return httpx.Response(404, text="unknown endpoint")


@pytest.fixture
def fake_consul():
    return FakeConsul()


@pytest.fixture
def transport(fake_consul):
    return httpx.MockTransport(fake_consul.handler)


@pytest.fixture
def journal(tmp_path):
    return EventJournal(str(tmp_path / "events.db"))


@pytest.fixture
def catalog_config():
    return CatalogConfig(port=8500)


@pytest.fixture
def reconciler(catalog_config, journal, transport):
    r = Reconciler(catalog_config, journal, poll_interval_s=1, transport=transport)
    yield r
    r.close()


@pytest.fixture
def make_service():
    def _make(service_id: str, name: str = "web", agent: str = "agent1", port: int = 80, tags=()):
        return Service(
            id=service_id,
            name=name,
            agent=agent,
            port=port,
            address="10.0.0.5",
            check=HealthCheck(http=f"http://10.0.0.5:{port}/health", interval="10s"),
            tags=tuple(tags),
        )

    return _make
