from __future__ import annotations

from typing import List

from clusterbackup.core.contracts import (
    CONFIG_MAP,
    NOTEBOOK,
    PERSISTENT_VOLUME_CLAIM,
    Dependency,
    Instance,
    ResourceTypeRef,
    describe_instance,
    instance_namespace,
)
from clusterbackup.core.logger import get_logger
from clusterbackup.dependencies.helpers import (
    collect_names,
    configmap_refs_from_container,
    configmap_refs_from_volume,
    fetch_dependencies,
    pvc_refs_from_volume,
    query_list,
    secret_refs_from_container,
    secret_refs_from_volume,
)
from clusterbackup.dependencies.resolver import DependencyResolver
from clusterbackup.pipeline.concurrency import CancelToken
from clusterbackup.readers.base import Reader

logger = get_logger(__name__)

TRUSTED_CA_BUNDLE_NAME = "trusted-ca-bundle"

VOLUMES_PATH = ".spec.template.spec.volumes // []"
CONTAINERS_PATH = ".spec.template.spec.containers // []"


def is_trusted_ca_bundle(name: str) -> bool:
    # Matches the platform-injected bundles, e.g. "workbench-trusted-ca-bundle".
    return name.endswith(TRUSTED_CA_BUNDLE_NAME)


class NotebookResolver(DependencyResolver):
    """
    Kubeflow Notebooks: ConfigMaps and PVCs mounted or referenced by the pod template.

    Secrets referenced by the notebook are never fetched, so no credentials
    end up in a backup through this resolver.
    """

    name = "notebooks"

    def can_handle(self, ref: ResourceTypeRef) -> bool:
        return ref.group == NOTEBOOK.group and ref.resource == NOTEBOOK.resource

    def resolve(self, token: CancelToken, reader: Reader, instance: Instance) -> List[Dependency]:
        namespace = instance_namespace(instance)
        volumes = [v for v in query_list(instance, VOLUMES_PATH) if isinstance(v, dict)]
        containers = [c for c in query_list(instance, CONTAINERS_PATH) if isinstance(c, dict)]

        configmaps = collect_names(
            [configmap_refs_from_volume(v) for v in volumes]
            + [configmap_refs_from_container(c) for c in containers],
            exclude=is_trusted_ca_bundle,
        )
        pvcs = collect_names(pvc_refs_from_volume(v) for v in volumes)

        skipped = collect_names(
            [secret_refs_from_volume(v) for v in volumes] + [secret_refs_from_container(c) for c in containers]
        )
        if skipped:
            logger.debug(
                "Not backing up secrets referenced by notebook %s: %s",
                describe_instance(instance),
                ", ".join(skipped),
            )

        deps = fetch_dependencies(token, reader, namespace, CONFIG_MAP, configmaps)
        deps.extend(fetch_dependencies(token, reader, namespace, PERSISTENT_VOLUME_CLAIM, pvcs))
        return deps
