from __future__ import annotations

import secrets
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from csr.agents import CatalogUnavailable
from csr.api_models import PassView, RegistrationView, ServiceSpec, SweepView
from csr.db import EventJournal
from csr.reconciler import Reconciler
from csr.settings import Settings
from csr.sources import HttpTaskSource

security = HTTPBasic(auto_error=False)


def create_app(settings: Settings | None = None, reconciler: Reconciler | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    journal = reconciler.journal if reconciler else EventJournal(settings.db_path)
    reconciler = reconciler or Reconciler(settings.catalog, journal, poll_interval_s=settings.poll_interval_s)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.tasks_url:
            reconciler.start(HttpTaskSource(settings.tasks_url, journal, timeout_s=settings.catalog.timeout_s))
        yield
        reconciler.close()

    app = FastAPI(title="Catalog Service Reconciler", lifespan=lifespan)
    app.state.settings = settings
    app.state.reconciler = reconciler
    app.state.journal = journal

    def require_user(credentials: HTTPBasicCredentials | None = Depends(security)) -> str | None:
        if not settings.api_user:
            return None
        if credentials is None or not (
            secrets.compare_digest(credentials.username, settings.api_user)
            and secrets.compare_digest(credentials.password, settings.api_password or "")
        ):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials",
                headers={"WWW-Authenticate": "Basic"},
            )
        return credentials.username

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "healthy"}

    @app.get("/registrations", response_model=list[RegistrationView])
    def registrations(request: Request, _user: str | None = Depends(require_user)):
        out = []
        for e in request.app.state.reconciler.registrations():
            r = e.registration
            out.append(
                RegistrationView(
                    id=r.id,
                    name=r.name,
                    agent=e.agent,
                    port=r.port,
                    address=r.address,
                    tags=list(r.tags),
                    check=r.check.kind,
                    marked=e.marked,
                    registered_at=e.registered_at,
                )
            )
        return out

    @app.get("/events")
    def events(request: Request, limit: int = 100, level: str | None = None, _user: str | None = Depends(require_user)):
        limit = max(1, min(1000, limit))
        return request.app.state.journal.latest(limit, level=level)

    @app.post("/reconcile", response_model=PassView)
    def reconcile(request: Request, services: list[ServiceSpec], _user: str | None = Depends(require_user)):
        try:
            report = request.app.state.reconciler.run_once([s.to_service() for s in services])
        except CatalogUnavailable as e:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e
        return PassView(
            registered=report.registered,
            skipped=report.skipped,
            failed=report.failed,
            sweep=SweepView(kept=report.sweep.kept, removed=report.sweep.removed, retained=report.sweep.retained),
        )

    return app


app = create_app()
