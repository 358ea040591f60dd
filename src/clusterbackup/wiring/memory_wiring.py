from __future__ import annotations

from typing import Any, Dict, List

import yaml

from clusterbackup.core.contracts import ResourceTypeRef
from clusterbackup.core.exceptions import ConfigurationError
from clusterbackup.models.reader_config import MemoryReaderConfig
from clusterbackup.wiring.reader_registry import BuiltReaderArgs, register_reader_wiring


def _load_resources_file(path: str) -> Dict[str, List[Dict[str, Any]]]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigurationError(f"Cannot read resources_file {path!r}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in resources_file {path!r}: {exc}") from exc

    if not isinstance(raw, dict) or not all(isinstance(v, list) for v in raw.values()):
        raise ConfigurationError(f"resources_file {path!r} must map resource types to lists of objects")
    return raw


@register_reader_wiring(kind="memory")
def build_memory_reader_args(*, reader: MemoryReaderConfig) -> BuiltReaderArgs:
    resources: Dict[str, List[Dict[str, Any]]] = {k: list(v) for k, v in reader.resources.items()}
    if reader.resources_file:
        for key, objects in _load_resources_file(reader.resources_file).items():
            resources.setdefault(key, []).extend(objects)

    # Keys are "resource" or "resource.group"; parse rejects empty ones.
    objects = {ResourceTypeRef.parse(key).kind_key: items for key, items in resources.items()}
    return BuiltReaderArgs(args=(objects,), kwargs={})
