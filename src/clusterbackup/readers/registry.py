from __future__ import annotations

from typing import Any, Callable, ClassVar, Dict, Optional, Type


class ReaderRegistryError(RuntimeError):
    pass


class ReaderRegistry:
    _registry: ClassVar[Dict[str, Type[Any]]] = {}

    @classmethod
    def register(
        cls,
        *,
        kind: str,
        reader_class: Type[Any],
        overwrite: bool = False,
    ) -> None:
        if not overwrite and kind in cls._registry:
            existing = cls._registry[kind]
            raise ReaderRegistryError(f"Reader already registered for kind={kind!r}: {existing}")
        cls._registry[kind] = reader_class

    @classmethod
    def get(cls, kind: str) -> Type[Any]:
        try:
            return cls._registry[kind]
        except KeyError as exc:
            raise ReaderRegistryError(f"No reader registered for kind={kind!r}") from exc

    @classmethod
    def try_get(cls, kind: str) -> Optional[Type[Any]]:
        return cls._registry.get(kind)

    @classmethod
    def clear(cls) -> None:
        cls._registry.clear()


def register_reader(*, kind: str, overwrite: bool = False) -> Callable[[Type[Any]], Type[Any]]:
    def decorator(reader_class: Type[Any]) -> Type[Any]:
        ReaderRegistry.register(kind=kind, reader_class=reader_class, overwrite=overwrite)
        return reader_class

    return decorator
