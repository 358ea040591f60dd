from __future__ import annotations

import importlib
import sys
from typing import Iterable


BUILTIN_PLUGIN_MODULES: tuple[str, ...] = (
    # Readers
    "clusterbackup.readers.kube.reader",
    "clusterbackup.readers.memory",
    "clusterbackup.wiring.kube_api_wiring",
    "clusterbackup.wiring.memory_wiring",

    # Sinks
    "clusterbackup.sinks.directory_sink",
    "clusterbackup.sinks.stream_sink",
    "clusterbackup.wiring.sink_wiring",
)


_LOADED = False


def load_builtin_plugins(*, reload: bool = False, modules: Iterable[str] = BUILTIN_PLUGIN_MODULES) -> None:
    """Import built-in reader, sink and wiring modules so their decorators register them.

    In production, call with reload=False (default) so imports are cheap.
    In tests, call with reload=True to clear the registries and re-run the decorators.
    """

    global _LOADED

    if _LOADED and not reload:
        return

    if reload:
        from clusterbackup.readers.registry import ReaderRegistry
        from clusterbackup.sinks.registry import SinkRegistry
        from clusterbackup.wiring.reader_registry import ReaderWiringRegistry
        from clusterbackup.wiring.sink_registry import SinkWiringRegistry

        ReaderRegistry.clear()
        ReaderWiringRegistry.clear()
        SinkRegistry.clear()
        SinkWiringRegistry.clear()

    for module_name in modules:
        if reload:
            sys.modules.pop(module_name, None)
        importlib.import_module(module_name)

    _LOADED = True
