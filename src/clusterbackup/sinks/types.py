from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional


CLUSTER_SCOPED_DIR = "cluster-scoped"


@dataclass
class DirectorySinkRuntimeConfig:
    """One YAML file per object under ``output_dir``.

    Namespaced objects go to ``<output_dir>/<namespace>/``, cluster-scoped
    ones to ``<output_dir>/cluster-scoped/``.
    """
    system_type: Literal["directory"] = "directory"
    output_dir: str = "."


@dataclass
class StreamSinkRuntimeConfig:
    system_type: Literal["stream"] = "stream"
    # None writes to stdout
    path: Optional[str] = None
