import pytest

from clusterbackup.core.contracts import CONFIG_MAP
from clusterbackup.core.exceptions import PipelineCancelled, ReaderForbiddenError, ResolveError
from clusterbackup.dependencies.helpers import (
    collect_names,
    configmap_refs_from_container,
    configmap_refs_from_volume,
    fetch_dependencies,
    pvc_refs_from_volume,
    query_bool,
    query_list,
    query_string,
    secret_refs_from_container,
    secret_refs_from_volume,
    unique,
)
from clusterbackup.pipeline.concurrency import CancelToken
from clusterbackup.readers.memory import MemoryReader


def test_volume_extractors():
    assert configmap_refs_from_volume({"name": "v", "configMap": {"name": "cfg"}}) == ["cfg"]
    assert secret_refs_from_volume({"name": "v", "secret": {"secretName": "creds"}}) == ["creds"]
    assert pvc_refs_from_volume({"name": "v", "persistentVolumeClaim": {"claimName": "data"}}) == ["data"]
    assert configmap_refs_from_volume({"name": "v", "emptyDir": {}}) == []


def test_container_extractors():
    container = {
        "name": "main",
        "envFrom": [{"configMapRef": {"name": "env-cm"}}, {"secretRef": {"name": "env-secret"}}],
        "env": [
            {"name": "A", "valueFrom": {"configMapKeyRef": {"name": "key-cm", "key": "a"}}},
            {"name": "B", "valueFrom": {"secretKeyRef": {"name": "key-secret", "key": "b"}}},
            {"name": "C", "value": "plain"},
        ],
    }

    assert configmap_refs_from_container(container) == ["env-cm", "key-cm"]
    assert secret_refs_from_container(container) == ["env-secret", "key-secret"]
    assert configmap_refs_from_container({"name": "bare"}) == []


def test_malformed_container_list_raises_resolve_error():
    with pytest.raises(ResolveError, match="expected a list"):
        configmap_refs_from_container({"envFrom": {"configMapRef": {"name": "x"}}})


def test_query_policies():
    doc = {"spec": {"name": "x", "count": 3, "deploy": True, "flag": "true", "items": None}}

    assert query_string(doc, ".spec.name") == "x"
    assert query_string(doc, ".spec.count") == ""
    assert query_string(doc, ".spec.name.deeper") == ""
    assert query_bool(doc, ".spec.deploy") is True
    assert query_bool(doc, ".spec.flag") is False
    assert query_bool(doc, ".spec.missing") is False
    assert query_list(doc, ".spec.items") == []
    assert query_list(doc, ".spec.absent") == []
    with pytest.raises(ResolveError):
        query_list(doc, ".spec.name")


def test_collect_names_dedupes_sorts_and_excludes():
    names = collect_names([["b", "a", ""], ["a", "c-trusted-ca-bundle"]], exclude=lambda n: n.endswith("bundle"))
    assert names == ["a", "b"]


def test_unique_keeps_first_occurrence_order():
    assert unique(["b", "", "a", "b"]) == ["b", "a"]


def test_fetch_dependencies_records_failures_in_order():
    reader = MemoryReader(
        {"configmaps": [{"metadata": {"name": "a", "namespace": "ns"}}]},
        get_errors={("configmaps", "ns", "c"): ReaderForbiddenError("forbidden", status_code=403)},
    )

    deps = fetch_dependencies(CancelToken(), reader, "ns", CONFIG_MAP, ["a", "b", "c"])

    assert [d.name for d in deps] == ["a", "b", "c"]
    assert [d.ok for d in deps] == [True, False, False]
    assert deps[0].resource["metadata"]["name"] == "a"
    assert deps[1].error.status_code == 404
    assert deps[2].error.status_code == 403


def test_fetch_dependencies_stops_on_cancellation():
    token = CancelToken()
    token.cancel()
    reader = MemoryReader()

    with pytest.raises(PipelineCancelled):
        fetch_dependencies(token, reader, "ns", CONFIG_MAP, ["a"])
    assert reader.calls == []


def test_fetch_dependencies_keeps_requested_name():
    class NamelessReader(MemoryReader):
        def get(self, ref, namespace, name):
            return {"data": {"k": "v"}}

    deps = fetch_dependencies(CancelToken(), NamelessReader(), "ns", CONFIG_MAP, ["cfg"])

    assert deps[0].ok
    assert deps[0].name == "cfg"
    assert deps[0].resource == {"data": {"k": "v"}}
