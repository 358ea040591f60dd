"""Tests for the multi-document YAML stream sink."""

from __future__ import annotations

import io

import yaml

from clusterbackup.core.contracts import CONFIG_MAP, NOTEBOOK
from clusterbackup.sinks.stream_sink import StreamSink
from clusterbackup.sinks.types import StreamSinkRuntimeConfig


def test_each_document_is_preceded_by_separator():
    buf = io.StringIO()
    sink = StreamSink(StreamSinkRuntimeConfig(), stream=buf)

    with sink:
        sink.write_resource(NOTEBOOK, {"kind": "Notebook", "metadata": {"name": "wb"}})
        sink.write_resource(CONFIG_MAP, {"kind": "ConfigMap", "metadata": {"name": "cfg"}})

    text = buf.getvalue()
    assert text.startswith("---\nkind: Notebook\n")
    assert text.count("---\n") == 2
    docs = list(yaml.safe_load_all(text))
    assert [d["kind"] for d in docs] == ["Notebook", "ConfigMap"]
    assert sink.documents == 2
    # injected streams stay open
    assert not buf.closed


def test_path_target_is_opened_and_closed(tmp_path):
    out = tmp_path / "backup.yaml"
    sink = StreamSink(StreamSinkRuntimeConfig(path=str(out)))

    sink.open()
    result = sink.write_resource(CONFIG_MAP, {"metadata": {"name": "cfg", "namespace": "ns"}})
    sink.close()

    assert result["target_location"] == str(out)
    assert out.read_text() == "---\nmetadata:\n  name: cfg\n  namespace: ns\n"


def test_defaults_to_stdout(capsys):
    sink = StreamSink(StreamSinkRuntimeConfig())
    sink.open()
    sink.write_resource(CONFIG_MAP, {"metadata": {"name": "cfg"}})
    sink.close()

    assert capsys.readouterr().out == "---\nmetadata:\n  name: cfg\n"


def test_sequences_are_indented():
    buf = io.StringIO()
    sink = StreamSink(StreamSinkRuntimeConfig(), stream=buf)
    sink.write_resource(CONFIG_MAP, {"spec": {"items": ["a", "b"]}})

    assert buf.getvalue() == "---\nspec:\n  items:\n    - a\n    - b\n"
