from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from .models import HealthCheck, Service


class CheckSpec(BaseModel):
    ttl: str | None = Field(None, description="TTL check, e.g. 30s")
    script: str | None = Field(None, description="Shell command run by the agent")
    http: str | None = Field(None, description="URL polled by the agent")
    interval: str | None = Field(None, description="Run interval for script/http checks, e.g. 10s")

    @model_validator(mode="after")
    def _one_kind(self) -> "CheckSpec":
        if sum(1 for k in (self.ttl, self.script, self.http) if k) != 1:
            raise ValueError("check needs exactly one of ttl, script or http")
        return self


class ServiceSpec(BaseModel):
    id: str = Field(..., min_length=1, description="Unique per task instance")
    name: str = Field(..., min_length=1, description="Logical service name")
    agent: str = Field(..., description="Address of the catalog agent on the task's node")
    port: int = Field(..., ge=1, le=65535)
    address: str = Field("", description="Address the service is reachable on")
    tags: list[str] = Field(default_factory=list)
    check: CheckSpec

    def to_service(self) -> Service:
        return Service(
            id=self.id,
            name=self.name,
            agent=self.agent,
            port=self.port,
            address=self.address,
            tags=tuple(self.tags),
            check=HealthCheck(
                ttl=self.check.ttl,
                script=self.check.script,
                http=self.check.http,
                interval=self.check.interval,
            ),
        )


class RegistrationView(BaseModel):
    id: str
    name: str
    agent: str
    port: int
    address: str
    tags: list[str]
    check: str
    marked: bool
    registered_at: str


class SweepView(BaseModel):
    kept: list[str]
    removed: list[str]
    retained: list[str]


class PassView(BaseModel):
    registered: list[str]
    skipped: list[str]
    failed: list[str]
    sweep: SweepView
