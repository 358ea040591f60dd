from __future__ import annotations

from datetime import datetime, timezone

from clusterbackup.core.template_resolution import (
    backup_template_vars,
    default_template_vars,
    resolve_config_templates,
    resolve_template_string,
    resolve_templates,
    unresolved_placeholders,
)


def test_resolve_template_string_replaces_identifier_placeholders_only():
    s = "/backups/{{backup_name}}/{{ts_compact}}/{{secrets/foo}}/${run_id}"
    out = resolve_template_string(
        s,
        {
            "backup_name": "nightly",
            "ts_compact": "20260119T000000Z",
            "run_id": "r1",
        },
    )

    assert out == "/backups/nightly/20260119T000000Z/{{secrets/foo}}/r1"


def test_unknown_placeholders_are_kept():
    assert resolve_template_string("/out/{{typo}}", {"run_id": "r1"}) == "/out/{{typo}}"


def test_resolve_templates_leaves_document_queries_alone():
    obj = {
        "sink": {"output_dir": "/b/{{run_id}}"},
        "strip_fields": ['.metadata.annotations."kubectl.kubernetes.io/last-applied-configuration"'],
        "includes": ["${kind}", {"resource": "prefix-{{run_id}}"}],
        "max_workers": 4,
    }
    out = resolve_templates(obj, {"run_id": 1, "kind": "notebooks.kubeflow.org"})

    assert out["sink"]["output_dir"] == "/b/1"
    assert out["strip_fields"] == obj["strip_fields"]
    assert out["includes"][0] == "notebooks.kubeflow.org"
    assert out["includes"][1]["resource"] == "prefix-1"
    assert out["max_workers"] == 4


def test_default_template_vars():
    now = datetime(2026, 3, 4, 5, 6, 7, tzinfo=timezone.utc)
    variables = default_template_vars(now=now)

    assert variables["ts_yyyy"] == "2026"
    assert variables["ts_MM"] == "03"
    assert variables["ts_dd"] == "04"
    assert variables["ts_compact"] == "20260304T050607Z"


def test_backup_template_vars_adds_run_identity():
    now = datetime(2026, 3, 4, 5, 6, 7, tzinfo=timezone.utc)
    variables = backup_template_vars(run_id="r9", backup_name="nightly", now=now)

    assert variables["run_id"] == "r9"
    assert variables["backup_name"] == "nightly"
    assert variables["ts_HH"] == "05"


def test_resolve_config_templates_uses_literal_backup_name():
    now = datetime(2026, 3, 4, 5, 6, 7, tzinfo=timezone.utc)
    raw = {
        "backup_name": "team-a",
        "sink": {"system_type": "directory", "output_dir": "/b/{{backup_name}}/{{ts_compact}}-{{run_id}}"},
    }

    out = resolve_config_templates(raw, run_id="r1", now=now)

    assert out["sink"]["output_dir"] == "/b/team-a/20260304T050607Z-r1"
    assert raw["sink"]["output_dir"].startswith("/b/{{")


def test_resolve_config_templates_defaults_backup_name():
    out = resolve_config_templates({"sink": {"path": "{{backup_name}}.yaml"}}, run_id="r1")
    assert out["sink"]["path"] == "backup.yaml"


def test_unresolved_placeholders():
    obj = {"a": "/x/{{typo}}/${other}", "b": ["{{typo}}", 3], "c": {"d": "plain"}}
    assert unresolved_placeholders(obj) == ["typo", "other"]
    assert unresolved_placeholders({"a": "{{secrets/foo}}"}) == []
