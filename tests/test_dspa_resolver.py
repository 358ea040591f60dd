from clusterbackup.core.contracts import (
    CONFIG_MAP,
    DSPA_V1,
    DSPA_V1ALPHA1,
    NOTEBOOK,
    PERSISTENT_VOLUME_CLAIM,
    SECRET,
)
from clusterbackup.dependencies.dspa import DSPAResolver
from clusterbackup.pipeline.concurrency import CancelToken
from clusterbackup.readers.memory import MemoryReader


def _dspa(spec, name="sample"):
    return {
        "apiVersion": "datasciencepipelinesapplications.opendatahub.io/v1",
        "kind": "DataSciencePipelinesApplication",
        "metadata": {"name": name, "namespace": "proj"},
        "spec": spec,
    }


def _obj(name):
    return {"metadata": {"name": name, "namespace": "proj"}}


def test_can_handle_both_versions():
    resolver = DSPAResolver()
    assert resolver.can_handle(DSPA_V1)
    assert resolver.can_handle(DSPA_V1ALPHA1)
    assert not resolver.can_handle(NOTEBOOK)


def test_full_dspa_order_and_deploy_flags():
    reader = MemoryReader(
        {
            "secrets": [_obj("s3-creds"), _obj("db-pass")],
            "configmaps": [_obj("custom-ca"), _obj("server-cfg"), _obj("launcher-cfg")],
            "persistentvolumeclaims": [_obj("mariadb-sample"), _obj("minio-sample")],
        }
    )
    dspa = _dspa(
        {
            "objectStorage": {
                "minio": {"deploy": True, "s3CredentialsSecret": {"secretName": "s3-creds"}},
            },
            "database": {"mariaDB": {"deploy": True, "passwordSecret": {"name": "db-pass"}}},
            "apiServer": {
                "cABundle": {"configMapName": "custom-ca"},
                "customServerConfigMap": {"name": "server-cfg"},
                "customKfpLauncherConfigMap": "launcher-cfg",
            },
        }
    )

    deps = DSPAResolver().resolve(CancelToken(), reader, dspa)

    assert [(d.ref, d.name) for d in deps] == [
        (SECRET, "s3-creds"),
        (SECRET, "db-pass"),
        (CONFIG_MAP, "custom-ca"),
        (CONFIG_MAP, "server-cfg"),
        (CONFIG_MAP, "launcher-cfg"),
        (PERSISTENT_VOLUME_CLAIM, "mariadb-sample"),
        (PERSISTENT_VOLUME_CLAIM, "minio-sample"),
    ]
    assert all(d.ok for d in deps)


def test_pvcs_only_when_deploy_is_true():
    resolver = DSPAResolver()

    assert resolver.pvc_names(_dspa({"database": {"mariaDB": {"deploy": True}}})) == ["mariadb-sample"]
    assert resolver.pvc_names(_dspa({"database": {"mariaDB": {}}})) == []
    assert resolver.pvc_names(_dspa({"objectStorage": {"minio": {"deploy": "true"}}})) == []
    assert resolver.pvc_names(_dspa({"objectStorage": {"minio": {"deploy": False}}})) == []
    assert resolver.pvc_names(_dspa({})) == []


def test_platform_ca_bundle_is_skipped_by_exact_name():
    resolver = DSPAResolver()

    skipped = _dspa({"apiServer": {"cABundle": {"configMapName": "trusted-ca-bundle"}}})
    kept = _dspa({"apiServer": {"cABundle": {"configMapName": "odh-trusted-ca-bundle"}}})

    assert resolver.configmap_names(skipped) == []
    assert resolver.configmap_names(kept) == ["odh-trusted-ca-bundle"]


def test_missing_secret_is_failed_dependency_and_others_still_fetched():
    reader = MemoryReader({"configmaps": [_obj("server-cfg")]})
    dspa = _dspa(
        {
            "objectStorage": {"externalStorage": {"s3CredentialsSecret": {"secretName": "gone"}}},
            "apiServer": {"customServerConfigMap": {"name": "server-cfg"}},
        }
    )

    secret, configmap = DSPAResolver().resolve(CancelToken(), reader, dspa)

    assert secret.ref == SECRET
    assert secret.resource is None
    assert secret.error.status_code == 404
    assert configmap.ok


def test_duplicate_secret_names_fetched_once():
    reader = MemoryReader({"secrets": [_obj("shared")]})
    dspa = _dspa(
        {
            "objectStorage": {"externalStorage": {"s3CredentialsSecret": {"secretName": "shared"}}},
            "database": {"externalDB": {"passwordSecret": {"name": "shared"}}},
        }
    )

    deps = DSPAResolver().resolve(CancelToken(), reader, dspa)

    assert [d.name for d in deps] == ["shared"]
    assert reader.calls == [("get", "secrets", "proj", "shared")]
