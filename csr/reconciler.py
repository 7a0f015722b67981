from __future__ import annotations

import time
from dataclasses import dataclass, field
from threading import Event, Lock, Thread, current_thread

import httpx

from .agents import AgentPool, CatalogError, CatalogUnavailable
from .cache import CacheEntry, RegistrationCache
from .db import EventJournal
from .models import Registration, Result, Service
from .settings import CatalogConfig
from .sources import DesiredStateSource, SourceError
from .upstreams import BackendStore


@dataclass
class SweepReport:
    kept: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    retained: list[str] = field(default_factory=list)


@dataclass
class PassReport:
    registered: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    sweep: SweepReport = field(default_factory=SweepReport)


class Reconciler:
    """Keeps the catalog in line with the orchestrator's live tasks.

    One pass registers every desired service (once per id) and then sweeps
    the cache, deregistering whatever the pass did not see.
    """

    def __init__(
        self,
        config: CatalogConfig,
        journal: EventJournal,
        poll_interval_s: int = 30,
        transport: httpx.BaseTransport | None = None,
    ):
        self.journal = journal
        self.poll_interval_s = max(1, int(poll_interval_s))
        self._pool = AgentPool(config, journal, transport=transport)
        self._cache = RegistrationCache()
        self._backends = BackendStore(journal)
        self._pass_lock = Lock()
        self._stop = Event()
        self._thr: Thread | None = None

    # -- one pass -----------------------------------------------------------

    def register(self, service: Service) -> Result:
        if service.id in self._cache:
            self.journal.log("DEBUG", f"Service found. Not registering: {service.id}", service_id=service.id)
            self._cache.mark(service.id)
            return Result.ok()

        client = self._pool.client(service.agent)
        if client is None:
            msg = f"No agent address for {service.id}"
            self.journal.log("WARN", msg, service_id=service.id)
            return Result.recoverable(msg)

        self.journal.log("INFO", f"Registering {service.id}", service_id=service.id, agent=service.agent)
        registration = Registration.from_service(service)
        try:
            client.register_service(registration)
        except CatalogError as e:
            msg = f"Unable to register {service.id}: {e}"
            self.journal.log("WARN", msg, service_id=service.id, agent=service.agent)
            return Result.recoverable(msg)

        res = self._backends.upsert(service.name, service.agent, service.port, client)
        if not res.is_ok:
            self.journal.log("WARN", res.error or "backend upsert failed", service_id=service.id, agent=service.agent)
            return res

        self._cache.add(registration, service.agent)
        self._cache.mark(service.id)
        return Result.ok()

    def deregister(self) -> SweepReport:
        report = SweepReport()
        for service_id in self._cache.snapshot():
            entry = self._cache.get(service_id)
            if entry is None:
                continue
            if not self._cache.is_stale(service_id):
                self._cache.unmark(service_id)
                report.kept.append(service_id)
                continue

            self.journal.log("INFO", f"Deregistering {service_id}", service_id=service_id, agent=entry.agent)
            if self._deregister_entry(entry):
                self._cache.remove(service_id)
                report.removed.append(service_id)
            else:
                report.retained.append(service_id)
        return report

    def _deregister_entry(self, entry: CacheEntry) -> bool:
        service_id = entry.registration.id
        client = self._pool.client(entry.agent)
        if client is None:
            self.journal.log("WARN", f"Deregistration error for {service_id}: no agent address", service_id=service_id)
            return False
        try:
            client.deregister_service(service_id)
        except CatalogError as e:
            self.journal.log("WARN", f"Deregistration error for {service_id}: {e}", service_id=service_id, agent=entry.agent)
            return False

        res = self._backends.remove(entry.registration, client, fallback_agent=entry.agent)
        if not res.is_ok:
            self.journal.log("WARN", res.error or "backend delete failed", service_id=service_id, agent=entry.agent)
        return True

    def run_once(self, services: list[Service]) -> PassReport:
        """Register every desired service, then sweep. Passes never overlap."""
        with self._pass_lock:
            report = PassReport()
            for service in services:
                known = service.id in self._cache
                res = self.register(service)
                if not res.is_ok:
                    report.failed.append(service.id)
                elif known:
                    report.skipped.append(service.id)
                else:
                    report.registered.append(service.id)
            report.sweep = self.deregister()
            return report

    def registrations(self) -> list[CacheEntry]:
        return self._cache.entries()

    # -- background loop ----------------------------------------------------

    def start(self, source: DesiredStateSource) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._stop.clear()
        self._thr = Thread(target=self._loop, args=(source,), daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self._stop.set()

    def close(self, timeout_s: float = 10.0) -> None:
        self.stop()
        if self._thr and self._thr is not current_thread():
            self._thr.join(timeout=timeout_s)
        self._pool.close()

    def _loop(self, source: DesiredStateSource) -> None:
        self.journal.log("INFO", "Reconciler started")
        while not self._stop.is_set():
            started = time.time()
            try:
                self._tick(source)
            except CatalogUnavailable as e:
                self.journal.log("FATAL", f"Reconciler stopped: {e}")
                return
            except SourceError as e:
                self.journal.log("ERROR", f"Reconciler tick failed: {e}")
            except Exception as e:
                self.journal.log("ERROR", f"Reconciler tick failed: {type(e).__name__}: {e}")
            elapsed = time.time() - started
            self._stop.wait(max(0.0, self.poll_interval_s - elapsed))

    def _tick(self, source: DesiredStateSource) -> None:
        report = self.run_once(source.fetch())
        if report.registered or report.failed or report.sweep.removed or report.sweep.retained:
            self.journal.log(
                "INFO",
                f"Pass done: {len(report.registered)} registered, {len(report.failed)} failed, "
                f"{len(report.sweep.removed)} removed, {len(report.sweep.retained)} retained",
            )
