from __future__ import annotations

import sys
import threading
from datetime import datetime, timezone
from typing import IO, Any, Dict, Optional

from clusterbackup.core.base_sink import BaseSink
from clusterbackup.core.contracts import Instance, ResourceTypeRef, describe_instance
from clusterbackup.core.exceptions import SinkError
from clusterbackup.sinks.registry import register_sink
from clusterbackup.sinks.strategies.yaml_writer import YamlWriterStrategy
from clusterbackup.sinks.types import StreamSinkRuntimeConfig

DOCUMENT_SEPARATOR = "---\n"


@register_sink(system_type="stream")
class StreamSink(BaseSink):
    """
    Writes every object into one multi-document YAML stream.

    Each document is preceded by a ``---`` line. The target is stdout unless
    ``path`` is set; an explicit ``stream`` argument wins over both (tests,
    embedding).
    """

    def __init__(self, config: StreamSinkRuntimeConfig, *, stream: Optional[IO[str]] = None):
        super().__init__(config)
        self._writer = YamlWriterStrategy()
        self._lock = threading.Lock()
        self._stream = stream
        self._owns_stream = False
        self.documents = 0

    def open(self) -> None:
        if self._stream is not None:
            return
        if self.config.path:
            try:
                self._stream = open(self.config.path, "w", encoding="utf-8")
            except OSError as exc:
                raise SinkError(f"opening {self.config.path}: {exc}") from exc
            self._owns_stream = True
        else:
            self._stream = sys.stdout

    def write_resource(self, ref: ResourceTypeRef, obj: Instance) -> Dict[str, Any]:
        text = self._writer.dumps(obj)
        with self._lock:
            if self._stream is None:
                self.open()
            try:
                self._stream.write(DOCUMENT_SEPARATOR)
                self._stream.write(text)
            except (OSError, ValueError) as exc:
                raise SinkError(f"writing {ref.kind_key} {describe_instance(obj)}: {exc}") from exc
            self.documents += 1

        return {
            "write_time_utc": datetime.now(timezone.utc).isoformat(),
            "target_location": self.config.path or "<stdout>",
            "status": "success",
            "document": self.documents,
        }

    def close(self) -> None:
        with self._lock:
            if self._stream is None:
                return
            try:
                self._stream.flush()
            finally:
                if self._owns_stream:
                    self._stream.close()
                    self._stream = None
                    self._owns_stream = False
