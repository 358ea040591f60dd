from __future__ import annotations

from abc import ABC, abstractmethod

from clusterbackup.core.contracts import Instance


class WriterStrategy(ABC):
    """Serialises one object; sinks decide where the text goes."""

    file_extension: str = ""

    @abstractmethod
    def dumps(self, obj: Instance) -> str:
        raise NotImplementedError
