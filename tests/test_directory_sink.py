from pathlib import Path

import pytest
import yaml

from clusterbackup.core.contracts import CONFIG_MAP, NOTEBOOK, ResourceTypeRef
from clusterbackup.core.exceptions import SinkError
from clusterbackup.sinks.directory_sink import DirectorySink
from clusterbackup.sinks.types import DirectorySinkRuntimeConfig


@pytest.fixture
def sink(tmp_path):
    s = DirectorySink(DirectorySinkRuntimeConfig(output_dir=str(tmp_path / "backup")))
    s.open()
    yield s
    s.close()


def test_layout_for_namespaced_and_cluster_scoped(sink, tmp_path):
    sink.write_resource(NOTEBOOK, {"kind": "Notebook", "metadata": {"name": "wb", "namespace": "team-a"}})
    sink.write_resource(CONFIG_MAP, {"kind": "ConfigMap", "metadata": {"name": "cfg", "namespace": "team-a"}})
    ns_ref = ResourceTypeRef(group="", version="v1", resource="namespaces")
    sink.write_resource(ns_ref, {"kind": "Namespace", "metadata": {"name": "team-a"}})

    root = tmp_path / "backup"
    files = sorted(str(p.relative_to(root)) for p in root.rglob("*.yaml"))
    assert files == [
        "cluster-scoped/namespaces-team-a.yaml",
        "team-a/configmaps-cfg.yaml",
        "team-a/notebooks.kubeflow.org-wb.yaml",
    ]


def test_written_yaml_round_trips_and_keeps_key_order(sink, tmp_path):
    obj = {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": "cfg", "namespace": "ns"},
        "data": {"script.sh": "#!/bin/sh\necho hi\n", "z": "1", "a": "2"},
    }

    result = sink.write_resource(CONFIG_MAP, obj)

    path = Path(result["target_location"])
    text = path.read_text()
    assert text.startswith("apiVersion: v1\nkind: ConfigMap\n")
    assert "script.sh: |" in text
    assert list(yaml.safe_load(text)["data"]) == ["script.sh", "z", "a"]
    assert yaml.safe_load(text) == obj
    assert result["status"] == "success"


def test_rewrite_replaces_file_without_leftovers(sink, tmp_path):
    sink.write_resource(CONFIG_MAP, {"metadata": {"name": "cfg", "namespace": "ns"}, "data": {"v": "1"}})
    sink.write_resource(CONFIG_MAP, {"metadata": {"name": "cfg", "namespace": "ns"}, "data": {"v": "2"}})

    ns_dir = tmp_path / "backup" / "ns"
    assert [p.name for p in ns_dir.iterdir()] == ["configmaps-cfg.yaml"]
    assert yaml.safe_load((ns_dir / "configmaps-cfg.yaml").read_text())["data"] == {"v": "2"}


def test_object_without_name_is_sink_error(sink):
    with pytest.raises(SinkError, match="no metadata.name"):
        sink.write_resource(CONFIG_MAP, {"metadata": {"namespace": "ns"}})


def test_unwritable_root_is_sink_error(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")

    with pytest.raises(SinkError, match="creating output directory"):
        DirectorySink(DirectorySinkRuntimeConfig(output_dir=str(blocker / "sub"))).open()
