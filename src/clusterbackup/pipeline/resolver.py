from __future__ import annotations

import logging
from typing import List, Optional

from clusterbackup.core.contracts import Dependency, WorkloadItem, WorkloadWithDeps, describe_instance
from clusterbackup.core.exceptions import PipelineCancelled, ReaderError, ReaderForbiddenError
from clusterbackup.core.logger import get_logger
from clusterbackup.dependencies.registry import ResolverRegistry
from clusterbackup.pipeline.concurrency import CancelToken, Channel, StageGroup
from clusterbackup.pipeline.stats import PipelineStats
from clusterbackup.readers.base import Reader

logger = get_logger(__name__)

_DISPLAY_NAMES = {
    "configmaps": "ConfigMap",
    "secrets": "Secret",
    "persistentvolumeclaims": "PVC",
}


def format_resource_type(resource: str) -> str:
    """Short singular display name for a plural resource (``configmaps`` -> ``ConfigMap``)."""
    if resource in _DISPLAY_NAMES:
        return _DISPLAY_NAMES[resource]
    if not resource:
        return resource
    singular = resource[:-1] if resource.endswith("s") else resource
    return singular[:1].upper() + singular[1:]


def format_error_reason(error: BaseException) -> str:
    """Short reason for a failed dependency: unauthorized, not found, timeout, connection error or error."""
    status = getattr(error, "status_code", None)
    if isinstance(error, ReaderForbiddenError) or status in (401, 403):
        return "unauthorized"
    if status == 404:
        return "not found"

    message = str(error).lower()
    if "forbidden" in message:
        return "unauthorized"
    if "not found" in message:
        return "not found"
    if "timeout" in message or "timed out" in message:
        return "timeout"
    if "connection refused" in message or (isinstance(error, ReaderError) and "connect" in message):
        return "connection error"
    return "error"


class ResolverStage:
    """
    Pool of workers turning WorkloadItems into WorkloadWithDeps.

    - No resolver for the type: the workload is forwarded with no dependencies.
    - The resolver raises: the workload is logged and dropped; the pool continues.
    - Cancellation (including a sibling stage failing) ends every worker.
    """

    def __init__(
        self,
        reader: Reader,
        registry: ResolverRegistry,
        *,
        stats: Optional[PipelineStats] = None,
        verbose: bool = False,
    ):
        self.reader = reader
        self.registry = registry
        self.stats = stats or PipelineStats()
        self.verbose = verbose

    def run(
        self,
        token: CancelToken,
        workers: int,
        input: Channel[WorkloadItem],
        output: Channel[WorkloadWithDeps],
    ) -> None:
        group = StageGroup(token, name="resolver")
        for i in range(max(1, workers)):
            group.go(f"worker-{i}", self._worker, input, output)
        group.wait()

    def _worker(
        self,
        token: CancelToken,
        input: Channel[WorkloadItem],
        output: Channel[WorkloadWithDeps],
    ) -> None:
        for item in input.iterate(token, stage="resolver"):
            try:
                result = self.resolve_workload(token, item)
            except PipelineCancelled:
                raise
            except Exception as exc:
                logger.warning("Failed to resolve %s: %s", describe_instance(item.instance), exc)
                self.stats.add("resolve_failed")
                continue

            output.send(result, token, stage="resolver")
            self.stats.add("resolved")

    def resolve_workload(self, token: CancelToken, item: WorkloadItem) -> WorkloadWithDeps:
        resolver = self.registry.try_get(item.ref)
        if resolver is None:
            return WorkloadWithDeps(ref=item.ref, instance=item.instance, dependencies=[])

        deps = resolver.resolve(token, self.reader, item.instance)
        if deps:
            self.log_dependencies(item, deps)
        return WorkloadWithDeps(ref=item.ref, instance=item.instance, dependencies=list(deps))

    def log_dependencies(self, item: WorkloadItem, deps: List[Dependency]) -> None:
        level = logging.INFO if self.verbose else logging.DEBUG
        if not logger.isEnabledFor(level):
            return

        lines = [f"Resolving {describe_instance(item.instance)}..."]
        for dep in deps:
            kind = format_resource_type(dep.ref.resource)
            if dep.error is not None:
                lines.append(f"  X {kind}: {dep.name} ({format_error_reason(dep.error)})")
            else:
                lines.append(f"  → {kind}: {dep.name}")
        # One record per workload keeps lines from different workers together.
        logger.log(level, "\n".join(lines))
