from __future__ import annotations

import threading
from dataclasses import dataclass, field, fields
from typing import Dict


@dataclass
class PipelineStats:
    """Counters for one resource type's pipeline run.

    Updated from the discovery, resolver and writer threads; use ``add``.
    """

    discovered: int = 0
    resolved: int = 0
    resolve_failed: int = 0
    workloads_written: int = 0
    write_failed: int = 0
    dependencies_written: int = 0
    dependencies_skipped: int = 0
    dependencies_write_failed: int = 0

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def add(self, counter: str, amount: int = 1) -> None:
        with self._lock:
            setattr(self, counter, getattr(self, counter) + amount)

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return {f.name: getattr(self, f.name) for f in fields(self) if not f.name.startswith("_")}

    @property
    def warnings(self) -> int:
        return self.resolve_failed + self.write_failed + self.dependencies_skipped + self.dependencies_write_failed
