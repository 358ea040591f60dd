from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, Tuple


class SinkWiringRegistryError(RuntimeError):
    pass


@dataclass(frozen=True)
class BuiltSinkArgs:
    args: Tuple[Any, ...]
    kwargs: Dict[str, Any]


BuilderFn = Callable[..., BuiltSinkArgs]


class SinkWiringRegistry:
    _registry: ClassVar[Dict[str, BuilderFn]] = {}

    @classmethod
    def register(
        cls,
        *,
        system_type: str,
        builder: BuilderFn,
        overwrite: bool = False,
    ) -> None:
        if not overwrite and system_type in cls._registry:
            raise SinkWiringRegistryError(f"Sink wiring already registered for system_type={system_type!r}")
        cls._registry[system_type] = builder

    @classmethod
    def get(cls, system_type: str) -> BuilderFn:
        try:
            return cls._registry[system_type]
        except KeyError as exc:
            raise SinkWiringRegistryError(f"No sink wiring registered for system_type={system_type!r}") from exc

    @classmethod
    def clear(cls) -> None:
        cls._registry.clear()


def register_sink_wiring(
    *,
    system_type: str,
    overwrite: bool = False,
) -> Callable[[BuilderFn], BuilderFn]:
    def decorator(builder: BuilderFn) -> BuilderFn:
        SinkWiringRegistry.register(system_type=system_type, builder=builder, overwrite=overwrite)
        return builder

    return decorator
