from __future__ import annotations

import json

from .agents import AgentClient, CatalogError
from .db import EventJournal
from .models import Registration, Result


UPSTREAM_PREFIX = "upstreams"

# Load balancer backend defaults. Not derived from the service.
BACKEND_DEFAULTS = {"weight": 1, "max_fails": 2, "fail_timeout": 10}


def upstream_key(name: str, agent: str, port: int) -> str:
    return f"{UPSTREAM_PREFIX}/{name}/{agent}:{int(port)}"


def agent_from_id(service_id: str) -> str | None:
    """Recover the bare agent name from a composite service id.

    ``web-1:agentA-3`` -> ``agentA``. Returns None if the id has no ``:``.
    """
    parts = service_id.split(":")
    if len(parts) < 2:
        return None
    agent = parts[1]
    if "-" in agent:
        agent = agent.split("-")[0]
    return agent or None


class BackendStore:
    """Load balancer backend records, one per (service name, agent, port)."""

    def __init__(self, journal: EventJournal):
        self.journal = journal
        self.value = json.dumps(BACKEND_DEFAULTS, separators=(",", ":")).encode()

    def upsert(self, name: str, agent: str, port: int, client: AgentClient) -> Result:
        key = upstream_key(name, agent, port)
        try:
            written = client.kv_cas(key, self.value, index=0)
        except CatalogError as e:
            return Result.recoverable(f"Unable to CAS key {key}: {e}")
        if not written:
            self.journal.log("DEBUG", f"{key} already exists", agent=agent)
        return Result.ok()

    def remove(self, registration: Registration, client: AgentClient, fallback_agent: str | None = None) -> Result:
        agent = agent_from_id(registration.id) or fallback_agent
        if not agent:
            return Result.recoverable(f"Unable to derive agent for {registration.id}")
        key = upstream_key(registration.name, agent, registration.port)
        try:
            client.kv_delete(key)
        except CatalogError as e:
            return Result.recoverable(f"Unable to delete key {key}: {e}")
        return Result.ok()
