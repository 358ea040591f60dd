from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from clusterbackup.core.base_sink import BaseSink
from clusterbackup.core.contracts import Instance, ResourceTypeRef, instance_name, instance_namespace
from clusterbackup.core.exceptions import SinkError
from clusterbackup.sinks.registry import register_sink
from clusterbackup.sinks.strategies.yaml_writer import YamlWriterStrategy
from clusterbackup.sinks.types import CLUSTER_SCOPED_DIR, DirectorySinkRuntimeConfig


@register_sink(system_type="directory")
class DirectorySink(BaseSink):
    """
    Writes each object to its own YAML file.

    Layout::

        <output_dir>/<namespace>/<resource>[.<group>]-<name>.yaml
        <output_dir>/cluster-scoped/<resource>[.<group>]-<name>.yaml

    Files are replaced atomically, so an interrupted run never leaves a
    half-written document behind.
    """

    def __init__(self, config: DirectorySinkRuntimeConfig):
        super().__init__(config)
        self._writer = YamlWriterStrategy()
        self.root = Path(config.output_dir)

    def open(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SinkError(f"creating output directory {self.root}: {exc}") from exc
        self.log_info(f"Writing backup to {self.root}")

    def target_path(self, ref: ResourceTypeRef, obj: Instance) -> Path:
        name = instance_name(obj)
        if not name:
            raise SinkError(f"{ref.kind_key} object has no metadata.name")
        namespace = instance_namespace(obj) or CLUSTER_SCOPED_DIR
        return self.root / namespace / f"{ref.kind_key}-{name}{self._writer.file_extension}"

    def write_resource(self, ref: ResourceTypeRef, obj: Instance) -> Dict[str, Any]:
        path = self.target_path(ref, obj)
        text = self._writer.dumps(obj)

        tmp = path.with_name(f".{path.name}.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp, path)
        except OSError as exc:
            tmp.unlink(missing_ok=True)
            raise SinkError(f"writing {path}: {exc}") from exc

        self.log_debug(f"Wrote {path}")
        return {
            "write_time_utc": datetime.now(timezone.utc).isoformat(),
            "target_location": str(path),
            "status": "success",
            "bytes": len(text.encode("utf-8")),
        }
