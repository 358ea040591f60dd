from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, Tuple


class ReaderWiringRegistryError(RuntimeError):
    pass


@dataclass(frozen=True)
class BuiltReaderArgs:
    args: Tuple[Any, ...]
    kwargs: Dict[str, Any]


BuilderFn = Callable[..., BuiltReaderArgs]


class ReaderWiringRegistry:
    _registry: ClassVar[Dict[str, BuilderFn]] = {}

    @classmethod
    def register(
        cls,
        *,
        kind: str,
        builder: BuilderFn,
        overwrite: bool = False,
    ) -> None:
        if not overwrite and kind in cls._registry:
            raise ReaderWiringRegistryError(f"Wiring already registered for reader kind={kind!r}")
        cls._registry[kind] = builder

    @classmethod
    def get(cls, kind: str) -> BuilderFn:
        try:
            return cls._registry[kind]
        except KeyError as exc:
            raise ReaderWiringRegistryError(f"No wiring registered for reader kind={kind!r}") from exc

    @classmethod
    def clear(cls) -> None:
        cls._registry.clear()


def register_reader_wiring(
    *,
    kind: str,
    overwrite: bool = False,
) -> Callable[[BuilderFn], BuilderFn]:
    def decorator(builder: BuilderFn) -> BuilderFn:
        ReaderWiringRegistry.register(kind=kind, builder=builder, overwrite=overwrite)
        return builder

    return decorator
