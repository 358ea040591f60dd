from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict

from clusterbackup.core.contracts import Instance, ResourceTypeRef
from clusterbackup.core.logger import get_logger


class BaseSink(ABC):
    """Destination for backed-up objects.

    The writer stage is the only caller and calls from a single thread, but
    sinks shared across runs should still guard their output.
    """

    def __init__(self, config: Any):
        self.config = config
        self.log = get_logger(f"clusterbackup.sinks.{self.__class__.__name__}")

    # --- Required method ---
    @abstractmethod
    def write_resource(self, ref: ResourceTypeRef, obj: Instance) -> Dict[str, Any]:
        """Persist one (already stripped) object; returns an audit dict."""
        raise NotImplementedError

    # --- Optional lifecycle hooks ---
    def open(self) -> None:
        pass

    def close(self) -> None:
        pass

    def __enter__(self) -> "BaseSink":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- Logging helpers ---
    def log_info(self, msg: str):
        self.log.info(msg)

    def log_debug(self, msg: str):
        self.log.debug(msg)

    def log_warn(self, msg: str):
        self.log.warning(msg)
