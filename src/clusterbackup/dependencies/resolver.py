from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from clusterbackup.core.contracts import Dependency, Instance, ResourceTypeRef
from clusterbackup.pipeline.concurrency import CancelToken
from clusterbackup.readers.base import Reader


class DependencyResolver(ABC):
    """Finds the auxiliary resources one workload type references.

    Resolvers are shared by every resolver worker, so they hold no per-call
    state and must not modify the instance they are given.
    """

    name: str = "resolver"

    @abstractmethod
    def can_handle(self, ref: ResourceTypeRef) -> bool:
        """Pure predicate on the resource type; no I/O."""
        raise NotImplementedError

    @abstractmethod
    def resolve(self, token: CancelToken, reader: Reader, instance: Instance) -> List[Dependency]:
        """Dependencies of ``instance`` in a deterministic order.

        A referenced object that cannot be fetched is returned as a failed
        Dependency, not raised. ResolveError is reserved for workloads whose
        own spec cannot be read.
        """
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
