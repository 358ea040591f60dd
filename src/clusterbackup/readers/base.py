from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from clusterbackup.core.contracts import Instance, ResourceTypeRef


class Reader(ABC):
    """Read-only access to cluster objects.

    Implementations must be safe to call from several resolver workers at
    once; the pipeline does not serialize calls.
    """

    @abstractmethod
    def list(self, ref: ResourceTypeRef) -> List[Instance]:
        """All instances of ``ref`` across namespaces; pagination is handled here.

        Raises ReaderError on failure.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, ref: ResourceTypeRef, namespace: str, name: str) -> Instance:
        """One object. Raises ResourceNotFoundError when absent, ReaderError otherwise."""
        raise NotImplementedError

    def close(self) -> None:
        pass
