from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# A cluster object as returned by the API: nested dicts, lists and scalars.
Instance = Dict[str, Any]


@dataclass(frozen=True)
class ResourceTypeRef:
    """Identifies a kind of cluster object (group/version/plural-name triple).

    Used both as the dispatch key for dependency resolvers and as the
    addressing key for reader calls. Core resources have an empty group.
    """

    group: str
    version: str
    resource: str

    @classmethod
    def parse(cls, value: str, *, default_version: str = "v1") -> "ResourceTypeRef":
        """Parse ``resource`` or ``resource.group`` (e.g. ``notebooks.kubeflow.org``)."""
        value = value.strip()
        if not value:
            raise ValueError("resource type must not be empty")
        resource, _, group = value.partition(".")
        return cls(group=group, version=default_version, resource=resource)

    @property
    def kind_key(self) -> str:
        """``resource[.group]``, the prefix used for backup file names."""
        if self.group:
            return f"{self.resource}.{self.group}"
        return self.resource

    @property
    def api_version(self) -> str:
        if not self.group:
            return self.version
        return f"{self.group}/{self.version}"

    def api_path(self, namespace: Optional[str] = None, name: Optional[str] = None) -> str:
        """REST path for this type, optionally scoped to a namespace and an object name."""
        prefix = f"/api/{self.version}" if not self.group else f"/apis/{self.group}/{self.version}"
        if namespace:
            prefix += f"/namespaces/{namespace}"
        path = f"{prefix}/{self.resource}"
        if name:
            path += f"/{name}"
        return path

    def __str__(self) -> str:
        if self.group:
            return f"{self.resource}.{self.version}.{self.group}"
        return f"{self.resource}.{self.version}"


CONFIG_MAP = ResourceTypeRef(group="", version="v1", resource="configmaps")
SECRET = ResourceTypeRef(group="", version="v1", resource="secrets")
PERSISTENT_VOLUME_CLAIM = ResourceTypeRef(group="", version="v1", resource="persistentvolumeclaims")
NOTEBOOK = ResourceTypeRef(group="kubeflow.org", version="v1", resource="notebooks")
DSPA_V1 = ResourceTypeRef(
    group="datasciencepipelinesapplications.opendatahub.io",
    version="v1",
    resource="datasciencepipelinesapplications",
)
DSPA_V1ALPHA1 = ResourceTypeRef(
    group="datasciencepipelinesapplications.opendatahub.io",
    version="v1alpha1",
    resource="datasciencepipelinesapplications",
)


def instance_name(obj: Instance) -> str:
    return str((obj.get("metadata") or {}).get("name") or "")


def instance_namespace(obj: Instance) -> str:
    return str((obj.get("metadata") or {}).get("namespace") or "")


def describe_instance(obj: Optional[Instance]) -> str:
    """``namespace/name`` (or just ``name`` for cluster-scoped objects) for log lines."""
    if obj is None:
        return "<none>"
    namespace = instance_namespace(obj)
    name = instance_name(obj)
    return f"{namespace}/{name}" if namespace else name


@dataclass
class WorkloadItem:
    """One discovered workload; produced by discovery, consumed by the resolver stage."""

    ref: ResourceTypeRef
    instance: Instance


@dataclass
class Dependency:
    """An auxiliary resource referenced by a workload.

    Either fetched (``resource`` set) or recorded as failed (``error`` set),
    never both and never neither.
    """

    ref: ResourceTypeRef
    name: str
    resource: Optional[Instance] = None
    error: Optional[BaseException] = None

    def __post_init__(self) -> None:
        if (self.resource is None) == (self.error is None):
            raise ValueError(
                f"Dependency {self.ref.resource}/{self.name} must carry exactly one of resource or error"
            )

    @classmethod
    def found(cls, ref: ResourceTypeRef, resource: Instance, name: Optional[str] = None) -> "Dependency":
        return cls(ref=ref, name=name or instance_name(resource), resource=resource)

    @classmethod
    def failed(cls, ref: ResourceTypeRef, name: str, error: BaseException) -> "Dependency":
        return cls(ref=ref, name=name, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class WorkloadWithDeps:
    """A workload together with its resolved dependencies, in resolver order."""

    ref: ResourceTypeRef
    instance: Instance
    dependencies: List[Dependency] = field(default_factory=list)
