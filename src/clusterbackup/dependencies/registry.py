from __future__ import annotations

from typing import Iterable, Iterator, List, Optional, Tuple

from clusterbackup.core.contracts import ResourceTypeRef
from clusterbackup.core.exceptions import NoResolverError, ResolverRegistryError
from clusterbackup.dependencies.dspa import DSPAResolver
from clusterbackup.dependencies.notebooks import NotebookResolver
from clusterbackup.dependencies.resolver import DependencyResolver


class ResolverRegistry:
    """Ordered list of dependency resolvers; the first one that claims a type wins.

    Built once at startup and only read afterwards, so lookups take no lock.
    """

    def __init__(self, resolvers: Optional[Iterable[DependencyResolver]] = None):
        self._resolvers: List[DependencyResolver] = []
        for resolver in resolvers or ():
            self.register(resolver)

    def register(self, resolver: DependencyResolver) -> None:
        if resolver is None:
            raise ResolverRegistryError("cannot register a None resolver")
        if not isinstance(resolver, DependencyResolver):
            raise ResolverRegistryError(f"not a DependencyResolver: {resolver!r}")
        self._resolvers.append(resolver)

    def get_resolver(self, ref: ResourceTypeRef) -> DependencyResolver:
        resolver = self.try_get(ref)
        if resolver is None:
            raise NoResolverError(f"no dependency resolver registered for {ref}")
        return resolver

    def try_get(self, ref: ResourceTypeRef) -> Optional[DependencyResolver]:
        for resolver in self._resolvers:
            if resolver.can_handle(ref):
                return resolver
        return None

    def find_conflicts(
        self, refs: Iterable[ResourceTypeRef]
    ) -> List[Tuple[ResourceTypeRef, DependencyResolver, DependencyResolver]]:
        """Types claimed by more than one resolver, with the winner and each shadowed resolver."""
        conflicts = []
        for ref in refs:
            claimed = [r for r in self._resolvers if r.can_handle(ref)]
            for shadowed in claimed[1:]:
                conflicts.append((ref, claimed[0], shadowed))
        return conflicts

    def __len__(self) -> int:
        return len(self._resolvers)

    def __iter__(self) -> Iterator[DependencyResolver]:
        return iter(list(self._resolvers))


def build_default_registry(*, enabled: bool = True) -> ResolverRegistry:
    """Registry with the built-in resolvers, or an empty one when resolution is off."""
    registry = ResolverRegistry()
    if not enabled:
        return registry

    registry.register(NotebookResolver())
    registry.register(DSPAResolver())
    return registry
