from __future__ import annotations

from typing import Any, Callable, Optional

from clusterbackup.core.contracts import (
    Instance,
    ResourceTypeRef,
    WorkloadWithDeps,
    describe_instance,
    instance_namespace,
)
from clusterbackup.core.logger import get_logger
from clusterbackup.pipeline.concurrency import CancelToken, Channel
from clusterbackup.pipeline.resolver import format_error_reason, format_resource_type
from clusterbackup.pipeline.stats import PipelineStats

logger = get_logger(__name__)

WriteResourceFn = Callable[[ResourceTypeRef, Instance], Any]


class WriterStage:
    """Single consumer persisting each workload, then its dependencies in resolver order.

    Failures are per resource: a failed write is logged and counted and the
    remaining resources of the item are still written. Once cancellation is
    observed nothing more is written.
    """

    def __init__(self, write_resource: WriteResourceFn, *, stats: Optional[PipelineStats] = None):
        self.write_resource = write_resource
        self.stats = stats or PipelineStats()

    def run(self, token: CancelToken, input: Channel[WorkloadWithDeps]) -> None:
        for item in input.iterate(token, stage="writer"):
            self.write_item(token, item)

    def write_item(self, token: CancelToken, item: WorkloadWithDeps) -> None:
        token.raise_if_cancelled("writer")
        try:
            self.write_resource(item.ref, item.instance)
            self.stats.add("workloads_written")
        except Exception as exc:
            logger.warning("Failed to write %s: %s", describe_instance(item.instance), exc)
            self.stats.add("write_failed")

        for dep in item.dependencies:
            if dep.resource is None:
                logger.warning(
                    "Skipping %s %s/%s referenced by %s (%s)",
                    format_resource_type(dep.ref.resource),
                    instance_namespace(item.instance),
                    dep.name,
                    describe_instance(item.instance),
                    format_error_reason(dep.error),
                )
                self.stats.add("dependencies_skipped")
                continue

            token.raise_if_cancelled("writer")
            try:
                self.write_resource(dep.ref, dep.resource)
                self.stats.add("dependencies_written")
            except Exception as exc:
                logger.warning("Failed to write dependency %s: %s", describe_instance(dep.resource), exc)
                self.stats.add("dependencies_write_failed")
