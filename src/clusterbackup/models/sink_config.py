from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator


class DirectorySinkConfig(BaseModel):
    """Write one YAML file per object.

    Layout: ``<output_dir>/<namespace or cluster-scoped>/<resource>[.<group>]-<name>.yaml``
    """

    system_type: Literal["directory"] = "directory"
    output_dir: str

    @model_validator(mode="after")
    def _validate_output_dir(self) -> "DirectorySinkConfig":
        if not self.output_dir.strip():
            raise ValueError("output_dir must not be empty")
        return self


class StreamSinkConfig(BaseModel):
    """Write all objects as one multi-document YAML stream (stdout unless ``path`` is set)."""

    system_type: Literal["stream"] = "stream"
    path: Optional[str] = None


SinkConfig = Annotated[
    Union[DirectorySinkConfig, StreamSinkConfig],
    Field(discriminator="system_type"),
]
