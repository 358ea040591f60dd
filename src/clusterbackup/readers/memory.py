from __future__ import annotations

import copy
import threading
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from clusterbackup.core.contracts import Instance, ResourceTypeRef, instance_name, instance_namespace
from clusterbackup.core.exceptions import ReaderError, ResourceNotFoundError
from clusterbackup.readers.base import Reader
from clusterbackup.readers.registry import register_reader


@register_reader(kind="memory")
class MemoryReader(Reader):
    """
    Serves a fixed set of objects held in memory.

    Objects are keyed by ``resource[.group]`` (the version is ignored), which
    matches how the pipeline addresses dependencies. Useful for dry runs of a
    backup configuration and as the cluster stand-in in tests.

    Failures can be injected per type (``list_errors``) or per object
    (``get_errors`` keyed by ``(kind_key, namespace, name)``).
    """

    def __init__(
        self,
        objects: Optional[Mapping[str, Iterable[Instance]]] = None,
        *,
        list_errors: Optional[Mapping[str, Exception]] = None,
        get_errors: Optional[Mapping[Tuple[str, str, str], Exception]] = None,
    ):
        self._objects: Dict[str, List[Instance]] = {}
        self._lock = threading.Lock()
        self.list_errors = dict(list_errors or {})
        self.get_errors = dict(get_errors or {})
        self.calls: List[Tuple[str, str, str, str]] = []
        for key, items in (objects or {}).items():
            self._objects[key] = [copy.deepcopy(obj) for obj in items]

    def add(self, ref: ResourceTypeRef, *objects: Instance) -> None:
        with self._lock:
            self._objects.setdefault(ref.kind_key, []).extend(copy.deepcopy(obj) for obj in objects)

    def _record(self, op: str, ref: ResourceTypeRef, namespace: str = "", name: str = "") -> None:
        with self._lock:
            self.calls.append((op, ref.kind_key, namespace, name))

    def list(self, ref: ResourceTypeRef) -> List[Instance]:
        self._record("list", ref)
        if ref.kind_key in self.list_errors:
            raise self.list_errors[ref.kind_key]
        with self._lock:
            return [copy.deepcopy(obj) for obj in self._objects.get(ref.kind_key, [])]

    def get(self, ref: ResourceTypeRef, namespace: str, name: str) -> Instance:
        self._record("get", ref, namespace, name)
        injected = self.get_errors.get((ref.kind_key, namespace, name))
        if injected is not None:
            if isinstance(injected, ReaderError):
                raise injected
            raise ReaderError(f"getting {ref.resource} {namespace}/{name}: {injected}") from injected
        with self._lock:
            for obj in self._objects.get(ref.kind_key, []):
                if instance_name(obj) == name and instance_namespace(obj) == namespace:
                    return copy.deepcopy(obj)
        raise ResourceNotFoundError(ref.resource, namespace, name)
