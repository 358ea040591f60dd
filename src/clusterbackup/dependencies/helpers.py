"""
Reference extraction and fetching shared by the concrete resolvers.

Extractors read the fixed Kubernetes shapes (pod volumes, containers) out of
plain dicts through ``core.docquery``; nothing here depends on a particular
workload's schema.

Query policy:

- scalar lookups (``query_string``, ``query_bool``) never raise: a missing
  path or a value of the wrong type reads as ``""`` / ``False``;
- list lookups (``query_list``) treat missing or null as ``[]`` but raise
  ResolveError when the value is present and not a list, since the workload
  itself is malformed.
"""

from __future__ import annotations

from typing import Callable, Iterable, List, Optional

from clusterbackup.core.contracts import Dependency, Instance, ResourceTypeRef
from clusterbackup.core.docquery import MISSING, lookup
from clusterbackup.core.exceptions import DocumentQueryError, ReaderError, ResolveError
from clusterbackup.core.logger import get_logger
from clusterbackup.pipeline.concurrency import CancelToken
from clusterbackup.readers.base import Reader

logger = get_logger(__name__)


def query_string(doc: Instance, path: str) -> str:
    try:
        value = lookup(doc, path)
    except DocumentQueryError:
        return ""
    return value if isinstance(value, str) else ""


def query_bool(doc: Instance, path: str) -> bool:
    try:
        value = lookup(doc, path)
    except DocumentQueryError:
        return False
    return value is True


def query_list(doc: Instance, path: str) -> list:
    try:
        value = lookup(doc, path)
    except DocumentQueryError as exc:
        raise ResolveError(f"querying {path}: {exc}") from exc
    if value is MISSING or value is None:
        return []
    if not isinstance(value, list):
        raise ResolveError(f"querying {path}: expected a list, got {type(value).__name__}")
    return value


def _names(entries: Iterable[object], path: str) -> List[str]:
    names = []
    for entry in entries:
        if isinstance(entry, dict):
            name = query_string(entry, path)
            if name:
                names.append(name)
    return names


# --- pod volumes ---


def configmap_refs_from_volume(volume: Instance) -> List[str]:
    return _names([volume], ".configMap.name")


def secret_refs_from_volume(volume: Instance) -> List[str]:
    return _names([volume], ".secret.secretName")


def pvc_refs_from_volume(volume: Instance) -> List[str]:
    return _names([volume], ".persistentVolumeClaim.claimName")


# --- containers ---


def configmap_refs_from_container(container: Instance) -> List[str]:
    names = _names(query_list(container, ".envFrom"), ".configMapRef.name")
    names.extend(_names(query_list(container, ".env"), ".valueFrom.configMapKeyRef.name"))
    return names


def secret_refs_from_container(container: Instance) -> List[str]:
    names = _names(query_list(container, ".envFrom"), ".secretRef.name")
    names.extend(_names(query_list(container, ".env"), ".valueFrom.secretKeyRef.name"))
    return names


def collect_names(
    name_lists: Iterable[Iterable[str]],
    *,
    exclude: Optional[Callable[[str], bool]] = None,
) -> List[str]:
    """Union of ``name_lists`` without empty or excluded names, sorted."""
    names = set()
    for group in name_lists:
        for name in group:
            if name and not (exclude and exclude(name)):
                names.add(name)
    return sorted(names)


def unique(names: Iterable[str]) -> List[str]:
    """Drop empty names and repeats, keeping first occurrences in order."""
    seen = set()
    result = []
    for name in names:
        if name and name not in seen:
            seen.add(name)
            result.append(name)
    return result


def fetch_dependencies(
    token: CancelToken,
    reader: Reader,
    namespace: str,
    ref: ResourceTypeRef,
    names: Iterable[str],
) -> List[Dependency]:
    """One Dependency per name, in order; fetch failures are recorded, not raised."""
    deps: List[Dependency] = []
    for name in names:
        token.raise_if_cancelled("resolver")
        try:
            obj = reader.get(ref, namespace, name)
        except ReaderError as exc:
            logger.debug("Could not fetch %s %s/%s: %s", ref.resource, namespace, name, exc)
            deps.append(Dependency.failed(ref, name, exc))
            continue
        deps.append(Dependency.found(ref, obj, name=name))
    return deps
