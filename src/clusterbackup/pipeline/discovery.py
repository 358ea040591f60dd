from __future__ import annotations

import logging
from typing import Optional

from clusterbackup.core.contracts import ResourceTypeRef, WorkloadItem
from clusterbackup.core.exceptions import ListingError, ReaderError
from clusterbackup.core.logger import get_logger
from clusterbackup.pipeline.concurrency import CancelToken, Channel
from clusterbackup.pipeline.stats import PipelineStats
from clusterbackup.readers.base import Reader

logger = get_logger(__name__)


class DiscoveryStage:
    """Lists every instance of one resource type and feeds them to the resolver pool."""

    def __init__(self, reader: Reader, *, stats: Optional[PipelineStats] = None, verbose: bool = False):
        self.reader = reader
        self.stats = stats or PipelineStats()
        self.verbose = verbose

    def run(self, token: CancelToken, ref: ResourceTypeRef, output: Channel[WorkloadItem]) -> None:
        token.raise_if_cancelled("discovery")
        try:
            instances = self.reader.list(ref)
        except ReaderError as exc:
            raise ListingError(f"listing {ref}: {exc}") from exc

        logger.log(
            logging.INFO if self.verbose else logging.DEBUG,
            "Found %d instances of %s",
            len(instances),
            ref.resource,
        )

        for instance in instances:
            output.send(WorkloadItem(ref=ref, instance=instance), token, stage="discovery")
            self.stats.add("discovered")
