from __future__ import annotations

from urllib.parse import quote

import httpx

from .db import EventJournal
from .models import Registration
from .settings import CatalogConfig


def _quote_key(key: str) -> str:
    # Each segment is escaped on its own so "/" stays the KV separator.
    return "/".join(quote(part, safe="") for part in key.split("/"))


class CatalogError(Exception):
    """A single catalog operation failed (transport or non-2xx reply)."""


class CatalogUnavailable(CatalogError):
    """A catalog connection could not be built. Nothing can proceed without one."""


class AgentClient:
    """Thin client for one catalog agent's HTTP API."""

    def __init__(self, address: str, config: CatalogConfig, transport: httpx.BaseTransport | None = None):
        self.address = address
        headers: dict[str, str] = {}
        if config.token:
            headers["X-Consul-Token"] = config.token
        auth = None
        if config.auth_enabled:
            auth = httpx.BasicAuth(config.auth_username or "", config.auth_password or "")
        self.base_url = f"{config.scheme}://{address}:{int(config.port)}"
        self._http = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            auth=auth,
            verify=config.ssl_verify,
            timeout=config.timeout_s,
            follow_redirects=False,
            transport=transport,
        )

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            resp = self._http.request(method, path, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise CatalogError(f"HTTP {e.response.status_code} from {self.address}: {e.response.text.strip()}") from e
        except httpx.HTTPError as e:
            raise CatalogError(f"{type(e).__name__}: {e}") from e
        return resp

    def register_service(self, registration: Registration) -> None:
        self._request("PUT", "/v1/agent/service/register", json=registration.to_catalog())

    def deregister_service(self, service_id: str) -> None:
        path = "/v1/agent/service/deregister/" + quote(service_id, safe="")
        self._request("PUT", path)

    def kv_cas(self, key: str, value: bytes, index: int = 0) -> bool:
        """Write ``key`` only if its modify index is ``index`` (0: key must not exist).

        Returns False when the store refused the write.
        """
        resp = self._request("PUT", f"/v1/kv/{_quote_key(key)}", params={"cas": index}, content=value)
        try:
            return resp.json() is True
        except ValueError as e:
            raise CatalogError(f"Invalid CAS reply for {key}: {resp.text!r}") from e

    def kv_delete(self, key: str) -> None:
        self._request("DELETE", f"/v1/kv/{_quote_key(key)}")

    def close(self) -> None:
        self._http.close()


class AgentPool:
    """One lazily created client per agent address, reused for the process lifetime."""

    def __init__(self, config: CatalogConfig, journal: EventJournal, transport: httpx.BaseTransport | None = None):
        self.config = config
        self.journal = journal
        self._transport = transport
        self._agents: dict[str, AgentClient] = {}

    def __contains__(self, address: str) -> bool:
        return address in self._agents

    def __len__(self) -> int:
        return len(self._agents)

    def client(self, address: str) -> AgentClient | None:
        if not address:
            self.journal.log("WARN", "No address for catalog agent")
            return None

        if address not in self._agents:
            self._agents[address] = self._connect(address)
        return self._agents[address]

    def _connect(self, address: str) -> AgentClient:
        try:
            client = AgentClient(address, self.config, transport=self._transport)
        except Exception as e:
            self.journal.log("FATAL", f"Unable to build catalog client for {address}: {e}", agent=address)
            raise CatalogUnavailable(f"catalog agent {address}: {e}") from e

        self.journal.log("DEBUG", f"Catalog agent address: {client.base_url}", agent=address)
        if self.config.token:
            self.journal.log("DEBUG", "Using catalog ACL token", agent=address)
        if self.config.ssl_enabled:
            self.journal.log("DEBUG", "TLS enabled", agent=address)
        if not self.config.ssl_verify:
            self.journal.log("DEBUG", "TLS verification disabled", agent=address)
        if self.config.auth_enabled:
            self.journal.log("DEBUG", "Using basic auth", agent=address)
        return client

    def close(self) -> None:
        """Close every pooled client. Only used at process shutdown."""
        for client in self._agents.values():
            client.close()
        self._agents.clear()
