from __future__ import annotations

from typing import Any, Callable, ClassVar, Dict, Optional, Type


class SinkRegistryError(RuntimeError):
    pass


class SinkRegistry:
    _registry: ClassVar[Dict[str, Type[Any]]] = {}

    @classmethod
    def register(
        cls,
        *,
        system_type: str,
        sink_class: Type[Any],
        overwrite: bool = False,
    ) -> None:
        if not overwrite and system_type in cls._registry:
            existing = cls._registry[system_type]
            raise SinkRegistryError(f"Sink already registered for system_type={system_type!r}: {existing}")
        cls._registry[system_type] = sink_class

    @classmethod
    def get(cls, system_type: str) -> Type[Any]:
        try:
            return cls._registry[system_type]
        except KeyError as exc:
            raise SinkRegistryError(f"No sink registered for system_type={system_type!r}") from exc

    @classmethod
    def try_get(cls, system_type: str) -> Optional[Type[Any]]:
        return cls._registry.get(system_type)

    @classmethod
    def clear(cls) -> None:
        cls._registry.clear()


def register_sink(
    *,
    system_type: str,
    overwrite: bool = False,
) -> Callable[[Type[Any]], Type[Any]]:
    def decorator(sink_class: Type[Any]) -> Type[Any]:
        SinkRegistry.register(system_type=system_type, sink_class=sink_class, overwrite=overwrite)
        return sink_class

    return decorator
