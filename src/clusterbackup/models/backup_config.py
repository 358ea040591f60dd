from __future__ import annotations

import os
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, NonNegativeInt, PositiveFloat, field_validator, model_validator

from clusterbackup.core.contracts import ResourceTypeRef
from clusterbackup.core.docquery import compile_query
from clusterbackup.core.exceptions import DocumentQueryError
from clusterbackup.models.reader_config import KubeApiReaderConfig, ReaderConfig
from clusterbackup.models.sink_config import SinkConfig, StreamSinkConfig

DEFAULT_INCLUDES: List[str] = [
    "notebooks.kubeflow.org",
    "datasciencepipelinesapplications.datasciencepipelinesapplications.opendatahub.io",
]

MAX_AUTO_WORKERS = 20
DEFAULT_TIMEOUT_SECONDS = 600.0


class ResourceTypeConfig(BaseModel):
    """Explicit form of a resource type, for versions other than v1."""

    group: str = ""
    version: str = "v1"
    resource: str

    def to_ref(self) -> ResourceTypeRef:
        return ResourceTypeRef(group=self.group, version=self.version, resource=self.resource)


ResourceTypeSpec = Union[str, ResourceTypeConfig]


def _to_ref(spec: ResourceTypeSpec) -> ResourceTypeRef:
    if isinstance(spec, ResourceTypeConfig):
        return spec.to_ref()
    return ResourceTypeRef.parse(spec)


class BackupConfig(BaseModel):
    backup_name: str = "backup"

    reader: ReaderConfig = Field(default_factory=KubeApiReaderConfig)
    # Without an explicit sink everything goes to stdout as a YAML stream.
    sink: SinkConfig = Field(default_factory=StreamSinkConfig)

    includes: List[ResourceTypeSpec] = Field(default_factory=lambda: list(DEFAULT_INCLUDES))
    excludes: List[ResourceTypeSpec] = Field(default_factory=list)

    # 0 = CPU count, capped at MAX_AUTO_WORKERS
    max_workers: NonNegativeInt = 0

    # Added to the default strip list, never replacing it.
    strip_fields: List[str] = Field(default_factory=list)

    timeout_seconds: PositiveFloat = DEFAULT_TIMEOUT_SECONDS
    dependencies: bool = True

    verbose: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value):
        if isinstance(value, str):
            return value.upper()
        return value

    @field_validator("includes", "excludes", mode="after")
    @classmethod
    def _validate_types(cls, value: List[ResourceTypeSpec]) -> List[ResourceTypeSpec]:
        for spec in value:
            if isinstance(spec, str):
                ResourceTypeRef.parse(spec)
        return value

    @field_validator("strip_fields", mode="after")
    @classmethod
    def _validate_strip_fields(cls, value: List[str]) -> List[str]:
        for path in value:
            try:
                compiled = compile_query(path)
            except DocumentQueryError as exc:
                raise ValueError(f"invalid strip path {path!r}: {exc}") from exc
            if compiled.has_default:
                raise ValueError(f"strip path must not carry a default: {path!r}")
            if not compiled.segments:
                raise ValueError("strip path must not address the whole document")
            if any(isinstance(s, int) for s in compiled.segments):
                raise ValueError(f"strip path must not contain a list index: {path!r}")
        return value

    @model_validator(mode="after")
    def _validate_includes(self) -> "BackupConfig":
        if not self.includes:
            raise ValueError("includes must name at least one resource type")
        return self

    def effective_max_workers(self) -> int:
        if self.max_workers > 0:
            return self.max_workers
        return max(1, min(os.cpu_count() or 1, MAX_AUTO_WORKERS))

    def resource_types(self) -> List[ResourceTypeRef]:
        """Includes minus excludes, matched on resource and group (version ignored).

        Order follows ``includes``; duplicates are dropped.
        """
        excluded = {_to_ref(spec).kind_key for spec in self.excludes}
        result: List[ResourceTypeRef] = []
        seen = set()
        for spec in self.includes:
            ref = _to_ref(spec)
            if ref.kind_key in excluded or ref in seen:
                continue
            seen.add(ref)
            result.append(ref)
        return result

    def output_location(self) -> Optional[str]:
        return getattr(self.sink, "output_dir", None) or getattr(self.sink, "path", None)
