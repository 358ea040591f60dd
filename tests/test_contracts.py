import pytest

from clusterbackup.core.contracts import (
    CONFIG_MAP,
    DSPA_V1ALPHA1,
    NOTEBOOK,
    Dependency,
    ResourceTypeRef,
    WorkloadWithDeps,
    describe_instance,
)
from clusterbackup.core.exceptions import ResourceNotFoundError


def test_parse_resource_and_group():
    ref = ResourceTypeRef.parse("notebooks.kubeflow.org")
    assert ref == NOTEBOOK
    assert ref.kind_key == "notebooks.kubeflow.org"

    core = ResourceTypeRef.parse("configmaps")
    assert core == CONFIG_MAP
    assert core.kind_key == "configmaps"

    with pytest.raises(ValueError):
        ResourceTypeRef.parse("  ")


def test_api_paths():
    assert CONFIG_MAP.api_path() == "/api/v1/configmaps"
    assert CONFIG_MAP.api_path("team-a", "cfg") == "/api/v1/namespaces/team-a/configmaps/cfg"
    assert NOTEBOOK.api_path() == "/apis/kubeflow.org/v1/notebooks"
    assert DSPA_V1ALPHA1.api_version == "datasciencepipelinesapplications.opendatahub.io/v1alpha1"
    assert CONFIG_MAP.api_version == "v1"


def test_str_includes_version():
    assert str(NOTEBOOK) == "notebooks.v1.kubeflow.org"
    assert str(CONFIG_MAP) == "configmaps.v1"


def test_dependency_requires_exactly_one_of_resource_or_error():
    with pytest.raises(ValueError):
        Dependency(ref=CONFIG_MAP, name="cfg")
    with pytest.raises(ValueError):
        Dependency(
            ref=CONFIG_MAP,
            name="cfg",
            resource={"metadata": {"name": "cfg"}},
            error=RuntimeError("boom"),
        )


def test_dependency_constructors():
    found = Dependency.found(CONFIG_MAP, {"metadata": {"name": "cfg", "namespace": "ns"}})
    assert found.name == "cfg"
    assert found.ok

    named = Dependency.found(CONFIG_MAP, {"data": {}}, name="requested")
    assert named.name == "requested"

    failed = Dependency.failed(CONFIG_MAP, "gone", ResourceNotFoundError("configmaps", "ns", "gone"))
    assert failed.resource is None
    assert not failed.ok
    assert "ns/gone not found" in str(failed.error)


def test_workload_with_deps_defaults_to_no_dependencies():
    item = WorkloadWithDeps(ref=NOTEBOOK, instance={"metadata": {"name": "wb"}})
    assert item.dependencies == []


def test_describe_instance():
    assert describe_instance({"metadata": {"name": "wb", "namespace": "ns"}}) == "ns/wb"
    assert describe_instance({"metadata": {"name": "node-1"}}) == "node-1"
    assert describe_instance(None) == "<none>"
