from __future__ import annotations

from typing import Optional

from clusterbackup.core.contracts import ResourceTypeRef, WorkloadItem, WorkloadWithDeps
from clusterbackup.core.logger import get_logger
from clusterbackup.dependencies.registry import ResolverRegistry
from clusterbackup.pipeline.concurrency import CancelToken, Channel, StageGroup
from clusterbackup.pipeline.discovery import DiscoveryStage
from clusterbackup.pipeline.resolver import ResolverStage
from clusterbackup.pipeline.stats import PipelineStats
from clusterbackup.pipeline.writer import WriteResourceFn, WriterStage
from clusterbackup.readers.base import Reader

logger = get_logger(__name__)


def run_resource_pipeline(
    token: CancelToken,
    ref: ResourceTypeRef,
    *,
    reader: Reader,
    registry: ResolverRegistry,
    write_resource: WriteResourceFn,
    workers: int,
    verbose: bool = False,
    stats: Optional[PipelineStats] = None,
) -> PipelineStats:
    """Run discovery -> resolver pool -> writer for one resource type.

    Both channels hold ``workers`` items. Discovery closes its channel when it
    returns (normally or not); the resolver stage closes its channel after all
    workers have finished, so the writer ends on its own. The first stage
    error cancels the other stages and is raised from here.
    """
    stats = stats or PipelineStats()
    workers = max(1, workers)

    workloads: Channel[WorkloadItem] = Channel(workers, name=f"{ref.resource}-workloads")
    resolved: Channel[WorkloadWithDeps] = Channel(workers, name=f"{ref.resource}-resolved")

    discovery = DiscoveryStage(reader, stats=stats, verbose=verbose)
    resolver = ResolverStage(reader, registry, stats=stats, verbose=verbose)
    writer = WriterStage(write_resource, stats=stats)

    def _discover(stage_token: CancelToken) -> None:
        try:
            discovery.run(stage_token, ref, workloads)
        finally:
            workloads.close()

    def _resolve(stage_token: CancelToken) -> None:
        try:
            resolver.run(stage_token, workers, workloads, resolved)
        finally:
            resolved.close()

    group = StageGroup(token, name=ref.resource)
    group.go("discovery", _discover)
    group.go("resolver", _resolve)
    group.go("writer", writer.run, resolved)
    group.wait()

    logger.debug("Pipeline for %s finished: %s", ref, stats.snapshot())
    return stats
