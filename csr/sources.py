from __future__ import annotations

from typing import Protocol

import httpx
from pydantic import ValidationError

from .api_models import ServiceSpec
from .db import EventJournal
from .models import Service


class SourceError(Exception):
    pass


class DesiredStateSource(Protocol):
    def fetch(self) -> list[Service]: ...


class StaticSource:
    def __init__(self, services: list[Service]):
        self.services = list(services)

    def fetch(self) -> list[Service]:
        return list(self.services)


class HttpTaskSource:
    """Pull the live task list from an HTTP endpoint.

    Expected JSON: a list of service documents (see ServiceSpec). Documents
    that fail validation are journaled and skipped.
    """

    def __init__(self, url: str, journal: EventJournal, timeout_s: float = 10.0, transport: httpx.BaseTransport | None = None):
        self.url = url
        self.journal = journal
        self.timeout_s = timeout_s
        self._transport = transport

    def fetch(self) -> list[Service]:
        try:
            with httpx.Client(timeout=self.timeout_s, follow_redirects=False, transport=self._transport) as client:
                resp = client.get(self.url)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise SourceError(f"Unable to fetch tasks from {self.url}: {type(e).__name__}: {e}") from e

        if not isinstance(data, list):
            raise SourceError(f"Expected a JSON list from {self.url}, got {type(data).__name__}")

        services: list[Service] = []
        for doc in data:
            try:
                services.append(ServiceSpec.model_validate(doc).to_service())
            except ValidationError as e:
                ident = doc.get("id") if isinstance(doc, dict) else None
                self.journal.log("WARN", f"Skipping invalid task document: {e.error_count()} error(s)", service_id=ident)
        return services
