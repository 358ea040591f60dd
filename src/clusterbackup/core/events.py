from __future__ import annotations

import json
import os
import threading
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from queue import Empty, Full, Queue
from typing import Any, Dict, List, Optional

from clusterbackup.core.logger import get_logger

DEFAULT_SCHEMA_VERSION = "1.0"

# Optional global bus for framework-wide access without changing signatures
_GLOBAL_BUS: Optional["EventBus"] = None


def set_global_bus(bus: Optional["EventBus"]) -> None:
    global _GLOBAL_BUS
    _GLOBAL_BUS = bus


def get_global_bus() -> Optional["EventBus"]:
    return _GLOBAL_BUS


def publish_event(
    *,
    stage: str,
    status: str,
    duration_ms: Optional[int] = None,
    counts: Optional[Dict[str, Any]] = None,
    details: Optional[Dict[str, Any]] = None,
    error: Optional[Dict[str, Any]] = None,
) -> None:
    """Publish to the global bus if one is configured.

    Publishing never raises into the caller; event delivery must not affect
    the backup itself.
    """
    bus = _GLOBAL_BUS
    if bus is None:
        return
    try:
        bus.publish(
            stage=stage,
            status=status,
            duration_ms=duration_ms,
            counts=counts,
            details=details,
            error=error,
        )
    except Exception:
        get_logger(__name__).debug("dropping event %s/%s", stage, status, exc_info=True)


class timed_stage:
    """Context manager that publishes started/completed/failed events for a stage.

    Usage:
        with timed_stage("pipeline.notebooks.kubeflow.org") as stage:
            stats = run_resource_pipeline(...)
            stage.counts = stats.snapshot()
    """

    def __init__(
        self,
        stage: str,
        *,
        counts: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.stage = stage
        self.counts = counts
        self.details = details
        self._start_ms: Optional[int] = None

    def __enter__(self) -> "timed_stage":
        self._start_ms = int(time.time() * 1000)
        publish_event(stage=self.stage, status="started", details=self.details)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):  # type: ignore
        duration_ms = int(time.time() * 1000) - (self._start_ms or 0)
        if exc_type is not None:
            publish_event(
                stage=self.stage,
                status="failed",
                duration_ms=duration_ms,
                counts=self.counts,
                details=self.details,
                error={"code": exc_type.__name__, "message": str(exc_val)},
            )
        else:
            publish_event(
                stage=self.stage,
                status="completed",
                duration_ms=duration_ms,
                counts=self.counts,
                details=self.details,
            )
        return False


@dataclass
class FunctionalEvent:
    """Structured lifecycle event for a backup run, separate from debug logging."""

    schema_version: str = DEFAULT_SCHEMA_VERSION
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    seq_no: int = 0
    ts: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    run_id: str = "-"
    backup_name: str = "-"

    stage: str = "-"  # backup, pipeline.<resource type>
    status: str = "-"  # started|completed|failed|dropped

    duration_ms: Optional[int] = None
    counts: Optional[Dict[str, Any]] = None
    details: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None


class EventObserver:
    """Observer interface for handling functional events."""

    def handle(self, event: FunctionalEvent) -> None:  # pragma: no cover
        raise NotImplementedError

    def flush(self) -> None:
        pass


class LogObserver(EventObserver):
    """Render one concise line per event through the clusterbackup logger."""

    def __init__(self) -> None:
        self.log = get_logger("clusterbackup.events")

    def handle(self, event: FunctionalEvent) -> None:
        msg = f"{event.stage} {event.status}"
        if event.duration_ms is not None:
            msg += f" duration_ms={event.duration_ms}"
        if event.counts:
            msg += f" | counts={event.counts}"
        if event.error:
            msg += f" | error={event.error.get('code')}: {event.error.get('message')}"
        self.log.info(msg)


class JSONLObserver(EventObserver):
    """Buffered JSONL writer; one JSON object per line under <base_path>/<backup_name>/<run_id>.jsonl."""

    def __init__(self, base_path: str, backup_name: str, run_id: str, *, batch_size: int = 50) -> None:
        self.batch_size = max(1, batch_size)
        self._buf: List[str] = []
        self.dir_path = os.path.join(base_path, backup_name)
        self.file_path = os.path.join(self.dir_path, f"{run_id}.jsonl")
        os.makedirs(self.dir_path, exist_ok=True)

    def handle(self, event: FunctionalEvent) -> None:
        self._buf.append(json.dumps(asdict(event), ensure_ascii=False, default=str))
        if len(self._buf) >= self.batch_size:
            self.flush()

    def flush(self) -> None:
        if not self._buf:
            return
        with open(self.file_path, "a", encoding="utf-8") as f:
            f.write("\n".join(self._buf) + "\n")
        self._buf.clear()


class EventBus:
    """Event bus with a background dispatcher and a bounded queue.

    Publishing never blocks: when the queue is full the event is dropped and
    counted. Durations are filled in for paired started/completed events.
    """

    def __init__(
        self,
        *,
        run_id: str,
        backup_name: str,
        observers: Optional[List[EventObserver]] = None,
        queue_size: int = 10_000,
    ) -> None:
        self.run_id = str(run_id)
        self.backup_name = backup_name

        self._observers: List[EventObserver] = observers or []
        self._q: Queue[FunctionalEvent] = Queue(maxsize=max(1, queue_size))
        self._seq_no = 0
        self._seq_lock = threading.Lock()
        self._running = False
        self._worker: Optional[threading.Thread] = None
        self._stage_start_times: Dict[str, int] = {}
        self.dropped = 0

    def _deliver(self, evt: FunctionalEvent) -> None:
        for obs in self._observers:
            try:
                obs.handle(evt)
            except Exception:
                # One broken observer must not starve the others
                get_logger(__name__).debug("observer %s failed", type(obs).__name__, exc_info=True)

    def _dispatch_loop(self) -> None:
        while self._running:
            try:
                evt = self._q.get(timeout=0.2)
            except Empty:
                continue
            self._deliver(evt)

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._worker = threading.Thread(target=self._dispatch_loop, name="functional_event_bus", daemon=True)
        self._worker.start()

    def shutdown(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._worker is not None and self._worker.is_alive():
            self._worker.join(timeout=2.0)
        while True:
            try:
                evt = self._q.get_nowait()
            except Empty:
                break
            self._deliver(evt)
        for obs in self._observers:
            try:
                obs.flush()
            except Exception:
                get_logger(__name__).warning("flushing %s failed", type(obs).__name__, exc_info=True)
        self._worker = None

    def publish(
        self,
        *,
        stage: str,
        status: str,
        duration_ms: Optional[int] = None,
        counts: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
        error: Optional[Dict[str, Any]] = None,
    ) -> None:
        now_ms = int(time.time() * 1000)

        with self._seq_lock:
            if status == "started":
                self._stage_start_times[stage] = now_ms
            elif status in ("completed", "failed") and duration_ms is None:
                start_ms = self._stage_start_times.pop(stage, None)
                if start_ms is not None:
                    duration_ms = now_ms - start_ms
            self._seq_no += 1
            seq_no = self._seq_no

        evt = FunctionalEvent(
            seq_no=seq_no,
            run_id=self.run_id,
            backup_name=self.backup_name,
            stage=stage,
            status=status,
            duration_ms=duration_ms,
            counts=counts,
            details=details,
            error=error,
        )
        try:
            self._q.put_nowait(evt)
        except Full:
            self.dropped += 1


def _env_flag(name: str, default: str) -> str:
    val = os.getenv(name)
    return val if val not in (None, "") else default


def build_default_bus(*, run_id: str, backup_name: str) -> Optional[EventBus]:
    """Construct an EventBus from environment variables.

    CLUSTERBACKUP_EVENTS_ENABLED: "true" | "false" (default: "false")
    CLUSTERBACKUP_EVENTS_TRANSPORTS: comma list of "log", "jsonl" (default: "log")
    CLUSTERBACKUP_EVENTS_PATH: base directory for the jsonl transport (default: "./backup-events")
    CLUSTERBACKUP_EVENTS_QUEUE_SIZE: int (default: 10000)
    """
    enabled = _env_flag("CLUSTERBACKUP_EVENTS_ENABLED", "false").lower() == "true"
    if not enabled:
        return None

    transports = [s.strip() for s in _env_flag("CLUSTERBACKUP_EVENTS_TRANSPORTS", "log").split(",") if s.strip()]
    try:
        q_size = int(_env_flag("CLUSTERBACKUP_EVENTS_QUEUE_SIZE", "10000"))
    except ValueError:
        q_size = 10000

    observers: List[EventObserver] = []
    if "log" in transports:
        observers.append(LogObserver())
    if "jsonl" in transports:
        observers.append(
            JSONLObserver(
                base_path=_env_flag("CLUSTERBACKUP_EVENTS_PATH", "./backup-events"),
                backup_name=backup_name,
                run_id=run_id,
            )
        )

    return EventBus(run_id=run_id, backup_name=backup_name, observers=observers, queue_size=q_size)
