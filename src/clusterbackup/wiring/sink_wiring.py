from __future__ import annotations

from clusterbackup.models.sink_config import DirectorySinkConfig, StreamSinkConfig
from clusterbackup.sinks.types import DirectorySinkRuntimeConfig, StreamSinkRuntimeConfig
from clusterbackup.wiring.sink_registry import BuiltSinkArgs, register_sink_wiring


@register_sink_wiring(system_type="directory")
def build_directory_sink_args(*, sink: DirectorySinkConfig) -> BuiltSinkArgs:
    runtime_cfg = DirectorySinkRuntimeConfig(output_dir=sink.output_dir)
    return BuiltSinkArgs(args=(runtime_cfg,), kwargs={})


@register_sink_wiring(system_type="stream")
def build_stream_sink_args(*, sink: StreamSinkConfig) -> BuiltSinkArgs:
    runtime_cfg = StreamSinkRuntimeConfig(path=sink.path)
    return BuiltSinkArgs(args=(runtime_cfg,), kwargs={})
