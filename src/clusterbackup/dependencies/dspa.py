from __future__ import annotations

from typing import List

from clusterbackup.core.contracts import (
    CONFIG_MAP,
    DSPA_V1,
    PERSISTENT_VOLUME_CLAIM,
    SECRET,
    Dependency,
    Instance,
    ResourceTypeRef,
    instance_name,
    instance_namespace,
)
from clusterbackup.dependencies.helpers import fetch_dependencies, query_bool, query_string, unique
from clusterbackup.dependencies.notebooks import TRUSTED_CA_BUNDLE_NAME
from clusterbackup.dependencies.resolver import DependencyResolver
from clusterbackup.pipeline.concurrency import CancelToken
from clusterbackup.readers.base import Reader

SECRET_PATHS = (
    ".spec.objectStorage.externalStorage.s3CredentialsSecret.secretName",
    ".spec.objectStorage.minio.s3CredentialsSecret.secretName",
    ".spec.database.mariaDB.passwordSecret.name",
    ".spec.database.externalDB.passwordSecret.name",
)

CA_BUNDLE_PATH = ".spec.apiServer.cABundle.configMapName"
CONFIGMAP_PATHS = (
    ".spec.apiServer.customServerConfigMap.name",
    ".spec.apiServer.customKfpLauncherConfigMap",
)

DEPLOY_MARIADB_PATH = ".spec.database.mariaDB.deploy"
DEPLOY_MINIO_PATH = ".spec.objectStorage.minio.deploy"
MARIADB_PVC_PREFIX = "mariadb-"
MINIO_PVC_PREFIX = "minio-"


class DSPAResolver(DependencyResolver):
    """
    DataSciencePipelinesApplications (v1 and v1alpha1).

    - Secrets: object storage and database credentials.
    - ConfigMaps: custom CA bundle (unless it is the platform's
      ``trusted-ca-bundle``), custom server config and KFP launcher config.
    - PVCs: the data volumes the operator creates for MariaDB and Minio, only
      when the DSPA asks the operator to deploy them.

    Any of these that cannot be fetched is returned as a failed dependency.
    """

    name = "dspa"

    def can_handle(self, ref: ResourceTypeRef) -> bool:
        return ref.group == DSPA_V1.group and ref.resource == DSPA_V1.resource

    def resolve(self, token: CancelToken, reader: Reader, instance: Instance) -> List[Dependency]:
        namespace = instance_namespace(instance)

        deps = fetch_dependencies(token, reader, namespace, SECRET, self.secret_names(instance))
        deps.extend(fetch_dependencies(token, reader, namespace, CONFIG_MAP, self.configmap_names(instance)))
        deps.extend(
            fetch_dependencies(token, reader, namespace, PERSISTENT_VOLUME_CLAIM, self.pvc_names(instance))
        )
        return deps

    def secret_names(self, instance: Instance) -> List[str]:
        return unique(query_string(instance, path) for path in SECRET_PATHS)

    def configmap_names(self, instance: Instance) -> List[str]:
        names = []
        ca_bundle = query_string(instance, CA_BUNDLE_PATH)
        if ca_bundle != TRUSTED_CA_BUNDLE_NAME:
            names.append(ca_bundle)
        names.extend(query_string(instance, path) for path in CONFIGMAP_PATHS)
        return unique(names)

    def pvc_names(self, instance: Instance) -> List[str]:
        name = instance_name(instance)
        names = []
        if query_bool(instance, DEPLOY_MARIADB_PATH):
            names.append(MARIADB_PVC_PREFIX + name)
        if query_bool(instance, DEPLOY_MINIO_PATH):
            names.append(MINIO_PVC_PREFIX + name)
        return names
