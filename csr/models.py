from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class HealthCheck:
    """Exactly one of ttl / script / http, plus the run interval."""

    ttl: str | None = None
    script: str | None = None
    http: str | None = None
    interval: str | None = None

    def __post_init__(self) -> None:
        kinds = [k for k in (self.ttl, self.script, self.http) if k]
        if len(kinds) != 1:
            raise ValueError("A health check needs exactly one of ttl, script or http.")

    @property
    def kind(self) -> str:
        if self.ttl:
            return "ttl"
        if self.script:
            return "script"
        return "http"

    def to_catalog(self) -> dict[str, Any]:
        if self.ttl:
            return {"TTL": self.ttl}
        out: dict[str, Any] = {}
        if self.script:
            # Current agents only run script checks given as an argv list.
            out["Args"] = ["/bin/sh", "-c", self.script]
        else:
            out["HTTP"] = self.http
        if self.interval:
            out["Interval"] = self.interval
        return out


@dataclass(frozen=True)
class Service:
    """Desired state for one running task, rebuilt every pass."""

    id: str
    name: str
    agent: str
    port: int
    address: str
    check: HealthCheck
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class Registration:
    """The payload actually sent to the catalog for a service."""

    id: str
    name: str
    port: int
    address: str
    check: HealthCheck
    tags: tuple[str, ...] = ()

    @classmethod
    def from_service(cls, service: Service) -> "Registration":
        return cls(
            id=service.id,
            name=service.name,
            port=service.port,
            address=service.address,
            check=service.check,
            tags=tuple(service.tags),
        )

    def to_catalog(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "ID": self.id,
            "Name": self.name,
            "Port": self.port,
            "Address": self.address,
            "Check": self.check.to_catalog(),
        }
        if self.tags:
            body["Tags"] = list(self.tags)
        return body


class Status(str, Enum):
    OK = "ok"
    RECOVERABLE = "recoverable"


@dataclass(frozen=True)
class Result:
    status: Status
    error: str | None = None

    @classmethod
    def ok(cls) -> "Result":
        return cls(Status.OK)

    @classmethod
    def recoverable(cls, error: str) -> "Result":
        return cls(Status.RECOVERABLE, error)

    @property
    def is_ok(self) -> bool:
        return self.status is Status.OK
