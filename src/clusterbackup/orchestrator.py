from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from clusterbackup.bootstrap import load_builtin_plugins
from clusterbackup.core.base_sink import BaseSink
from clusterbackup.core.contracts import Instance, ResourceTypeRef
from clusterbackup.core.docquery import strip_fields
from clusterbackup.core.events import build_default_bus, publish_event, set_global_bus, timed_stage
from clusterbackup.core.logger import configure_root_logger, get_logger, push_run_id, reset_run_id
from clusterbackup.core.template_resolution import resolve_config_templates, unresolved_placeholders
from clusterbackup.dependencies.registry import ResolverRegistry, build_default_registry
from clusterbackup.models.backup_config import BackupConfig
from clusterbackup.pipeline.concurrency import CancelToken
from clusterbackup.pipeline.runner import run_resource_pipeline
from clusterbackup.pipeline.stats import PipelineStats
from clusterbackup.pipeline.writer import WriteResourceFn
from clusterbackup.readers.base import Reader
from clusterbackup.readers.registry import ReaderRegistry
from clusterbackup.sinks.registry import SinkRegistry
from clusterbackup.wiring.reader_registry import ReaderWiringRegistry
from clusterbackup.wiring.sink_registry import SinkWiringRegistry

# Server-generated fields removed from every object before it is written.
DEFAULT_STRIP_FIELDS: Tuple[str, ...] = (
    ".status",
    ".metadata.generation",
    ".metadata.resourceVersion",
    ".metadata.uid",
    ".metadata.creationTimestamp",
    ".metadata.managedFields",
    ".metadata.selfLink",
    '.metadata.annotations."kubectl.kubernetes.io/last-applied-configuration"',
)


@dataclass
class ResourceTypeResult:
    ref: ResourceTypeRef
    stats: PipelineStats = field(default_factory=PipelineStats)
    error: Optional[BaseException] = None
    duration_ms: int = 0

    @property
    def status(self) -> str:
        if self.error is not None:
            return "failed"
        if self.stats.warnings:
            return "warned"
        return "succeeded"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resource_type": str(self.ref),
            "status": self.status,
            "stats": self.stats.snapshot(),
            "error": str(self.error) if self.error is not None else None,
            "duration_ms": self.duration_ms,
        }


@dataclass
class BackupReport:
    """Outcome of one backup run: one entry per attempted resource type."""

    run_id: str
    backup_name: str
    output_location: Optional[str] = None
    results: List[ResourceTypeResult] = field(default_factory=list)

    def _count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def succeeded(self) -> int:
        return self._count("succeeded")

    @property
    def warned(self) -> int:
        return self._count("warned")

    @property
    def failed(self) -> int:
        return self._count("failed")

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def totals(self) -> Dict[str, int]:
        totals: Dict[str, int] = {}
        for result in self.results:
            for key, value in result.stats.snapshot().items():
                totals[key] = totals.get(key, 0) + value
        return totals

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "backup_name": self.backup_name,
            "output_location": self.output_location,
            "status": "success" if self.ok else "failed",
            "attempted": len(self.results),
            "succeeded": self.succeeded,
            "warned": self.warned,
            "failed": self.failed,
            "totals": self.totals(),
            "resource_types": [r.to_dict() for r in self.results],
        }


def make_resource_writer(sink: BaseSink, strip_paths: Iterable[str]) -> WriteResourceFn:
    """Write function for the writer stage: strip fields, then hand the copy to the sink."""
    paths = tuple(strip_paths)

    def write_resource(ref: ResourceTypeRef, obj: Instance) -> Dict[str, Any]:
        return sink.write_resource(ref, strip_fields(obj, paths))

    return write_resource


def build_reader(cfg: BackupConfig) -> Reader:
    load_builtin_plugins()
    reader_cls = ReaderRegistry.get(cfg.reader.kind)
    built = ReaderWiringRegistry.get(cfg.reader.kind)(reader=cfg.reader)
    return reader_cls(*built.args, **built.kwargs)


def build_sink(cfg: BackupConfig) -> BaseSink:
    load_builtin_plugins()
    sink_cls = SinkRegistry.get(cfg.sink.system_type)
    built = SinkWiringRegistry.get(cfg.sink.system_type)(sink=cfg.sink)
    return sink_cls(*built.args, **built.kwargs)


class BackupOrchestrator:
    """
    Runs a backup described by a BackupConfig.

    Resource types are backed up one after another, each through its own
    discover -> resolve -> write pipeline, all under one run-wide deadline.
    A resource type that fails is logged and recorded in the report; the
    remaining types are still attempted.

    Example:
        >>> from clusterbackup import BackupOrchestrator
        >>> report = BackupOrchestrator().run({
        ...     "backup_name": "nightly",
        ...     "sink": {"system_type": "directory", "output_dir": "/backups/{{ts_compact}}"},
        ... })
        >>> report.ok
        True
    """

    def __init__(self, run_id: Optional[Union[str, int]] = None):
        self.run_id = str(run_id) if run_id is not None else str(uuid.uuid4())

    def _validate(self, cfg: Union[Dict[str, Any], BackupConfig]) -> BackupConfig:
        if isinstance(cfg, BackupConfig):
            raw = cfg.model_dump(mode="json")
        else:
            raw = dict(cfg)

        return BackupConfig.model_validate(resolve_config_templates(raw, run_id=self.run_id))

    def run(
        self,
        cfg: Union[Dict[str, Any], BackupConfig],
        *,
        reader: Optional[Reader] = None,
        sink: Optional[BaseSink] = None,
        registry: Optional[ResolverRegistry] = None,
        token: Optional[CancelToken] = None,
    ) -> BackupReport:
        """
        Execute the backup.

        Args:
            cfg: BackupConfig or a dict (validated here). ``{{run_id}}``,
                ``{{backup_name}}`` and ``{{ts_*}}`` placeholders in string
                values are resolved first.
            reader: Use this reader instead of building one from ``cfg.reader``.
                An injected reader is not closed.
            sink: Use this sink instead of building one from ``cfg.sink``.
            registry: Use this resolver registry instead of the built-in one.
            token: Parent cancellation token; cancelling it stops the run.

        Returns:
            BackupReport with per-type stats and errors.

        Raises:
            pydantic.ValidationError: the config is invalid.
            ConfigurationError: the reader or sink cannot be set up.
        """
        cfg = self._validate(cfg)

        level = cfg.log_level
        if cfg.verbose and level not in ("DEBUG", "INFO"):
            level = "INFO"
        configure_root_logger(level)
        log = get_logger(__name__)

        leftover = unresolved_placeholders(cfg.sink.model_dump(mode="json"))
        if leftover:
            log.warning("Sink config has unresolved placeholders: %s", ", ".join(leftover))

        run_token = push_run_id(self.run_id)
        bus = build_default_bus(run_id=self.run_id, backup_name=cfg.backup_name)
        if bus is not None:
            bus.start()
            set_global_bus(bus)

        owns_reader = reader is None
        report = BackupReport(
            run_id=self.run_id,
            backup_name=cfg.backup_name,
            output_location=cfg.output_location(),
        )
        publish_event(stage="backup", status="started")
        try:
            if reader is None:
                reader = build_reader(cfg)
            if sink is None:
                sink = build_sink(cfg)
            if registry is None:
                registry = build_default_registry(enabled=cfg.dependencies)

            run_backup(
                cfg,
                report,
                reader=reader,
                sink=sink,
                registry=registry,
                token=token,
            )

            log.info(
                "Backup complete: %s (%d succeeded, %d with warnings, %d failed)",
                report.output_location or "<stdout>",
                report.succeeded,
                report.warned,
                report.failed,
            )
            publish_event(
                stage="backup",
                status="completed" if report.ok else "failed",
                counts=report.totals(),
                details={"succeeded": report.succeeded, "warned": report.warned, "failed": report.failed},
            )
            return report
        except Exception as exc:
            publish_event(
                stage="backup",
                status="failed",
                error={"code": type(exc).__name__, "message": str(exc)},
            )
            raise
        finally:
            if owns_reader and reader is not None:
                reader.close()
            reset_run_id(run_token)
            if bus is not None:
                try:
                    bus.shutdown()
                except Exception:
                    log.debug("event bus shutdown failed", exc_info=True)
            set_global_bus(None)


def run_backup(
    cfg: BackupConfig,
    report: BackupReport,
    *,
    reader: Reader,
    sink: BaseSink,
    registry: ResolverRegistry,
    token: Optional[CancelToken] = None,
) -> BackupReport:
    log = get_logger(__name__)

    refs = cfg.resource_types()
    workers = cfg.effective_max_workers()
    write_resource = make_resource_writer(sink, DEFAULT_STRIP_FIELDS + tuple(cfg.strip_fields))

    for ref, winner, shadowed in registry.find_conflicts(refs):
        log.warning("%s is claimed by %r and %r; using %r", ref, winner, shadowed, winner)

    mode = "with dependencies" if cfg.dependencies else "without dependencies"
    log.info(
        "Backing up %d workload types %s (using %d resolver workers)...",
        len(refs),
        mode,
        workers,
    )

    deadline = CancelToken.with_timeout(cfg.timeout_seconds, parent=token)
    sink.open()
    try:
        for ref in refs:
            result = ResourceTypeResult(ref=ref)
            started = time.monotonic()
            with timed_stage(f"pipeline.{ref.kind_key}") as stage:
                try:
                    run_resource_pipeline(
                        deadline,
                        ref,
                        reader=reader,
                        registry=registry,
                        write_resource=write_resource,
                        workers=workers,
                        verbose=cfg.verbose,
                        stats=result.stats,
                    )
                except Exception as exc:
                    result.error = exc
                    log.warning("Failed to backup %s: %s", ref.resource, exc)
                result.duration_ms = int((time.monotonic() - started) * 1000)
                stage.counts = result.stats.snapshot()
                stage.details = {"status": result.status}
            report.results.append(result)
    finally:
        sink.close()

    return report
