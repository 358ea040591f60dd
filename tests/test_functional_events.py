"""Test functional events bus and observers."""
import json
import logging
import tempfile
import time
from pathlib import Path

import pytest

from clusterbackup.core.events import (
    EventBus,
    JSONLObserver,
    LogObserver,
    build_default_bus,
    publish_event,
    set_global_bus,
    timed_stage,
)


def teardown_function() -> None:
    set_global_bus(None)


def _read_events(path: Path):
    with open(path) as f:
        return [json.loads(line) for line in f]


def test_jsonl_observer_writes_events_to_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        observer = JSONLObserver(base_path=tmpdir, backup_name="nightly", run_id="run-1", batch_size=2)
        bus = EventBus(run_id="run-1", backup_name="nightly", observers=[observer])
        bus.start()
        set_global_bus(bus)

        publish_event(stage="backup", status="started")
        publish_event(stage="backup", status="completed")
        publish_event(stage="pipeline.notebooks.kubeflow.org", status="started")

        time.sleep(0.3)
        bus.shutdown()

        events = _read_events(Path(tmpdir) / "nightly" / "run-1.jsonl")
        assert [(e["stage"], e["status"]) for e in events] == [
            ("backup", "started"),
            ("backup", "completed"),
            ("pipeline.notebooks.kubeflow.org", "started"),
        ]
        assert events[1]["duration_ms"] is not None
        assert [e["seq_no"] for e in events] == [1, 2, 3]
        assert all(e["run_id"] == "run-1" for e in events)


def test_timed_stage_publishes_counts_and_failures():
    with tempfile.TemporaryDirectory() as tmpdir:
        observer = JSONLObserver(base_path=tmpdir, backup_name="b", run_id="r", batch_size=100)
        bus = EventBus(run_id="r", backup_name="b", observers=[observer])
        bus.start()
        set_global_bus(bus)

        with timed_stage("pipeline.configmaps") as stage:
            stage.counts = {"workloads_written": 3}

        with pytest.raises(RuntimeError):
            with timed_stage("pipeline.secrets"):
                raise RuntimeError("listing failed")

        bus.shutdown()

        events = _read_events(Path(tmpdir) / "b" / "r.jsonl")
        completed = [e for e in events if e["status"] == "completed"][0]
        failed = [e for e in events if e["status"] == "failed"][0]

        assert completed["counts"] == {"workloads_written": 3}
        assert failed["stage"] == "pipeline.secrets"
        assert failed["error"] == {"code": "RuntimeError", "message": "listing failed"}


def test_publish_without_bus_is_noop():
    set_global_bus(None)
    publish_event(stage="backup", status="started")


def test_full_queue_drops_events():
    bus = EventBus(run_id="r", backup_name="b", observers=[], queue_size=1)
    bus.publish(stage="a", status="started")
    bus.publish(stage="b", status="started")
    assert bus.dropped == 1


def test_broken_observer_does_not_block_others():
    class Broken(LogObserver):
        def handle(self, event):
            raise RuntimeError("nope")

    with tempfile.TemporaryDirectory() as tmpdir:
        good = JSONLObserver(base_path=tmpdir, backup_name="b", run_id="r")
        bus = EventBus(run_id="r", backup_name="b", observers=[Broken(), good])
        bus.start()
        bus.publish(stage="backup", status="started")
        bus.shutdown()

        assert len(_read_events(Path(tmpdir) / "b" / "r.jsonl")) == 1


def test_log_observer_renders_one_line(caplog):
    from clusterbackup.core.events import FunctionalEvent

    caplog.set_level(logging.INFO, logger="clusterbackup")
    LogObserver().handle(
        FunctionalEvent(stage="backup", status="completed", duration_ms=12, counts={"discovered": 2})
    )

    assert "backup completed duration_ms=12 | counts={'discovered': 2}" in caplog.text


def test_build_default_bus_from_env(monkeypatch, tmp_path):
    monkeypatch.delenv("CLUSTERBACKUP_EVENTS_ENABLED", raising=False)
    assert build_default_bus(run_id="r", backup_name="b") is None

    monkeypatch.setenv("CLUSTERBACKUP_EVENTS_ENABLED", "true")
    monkeypatch.setenv("CLUSTERBACKUP_EVENTS_TRANSPORTS", "log,jsonl")
    monkeypatch.setenv("CLUSTERBACKUP_EVENTS_PATH", str(tmp_path))
    bus = build_default_bus(run_id="r", backup_name="b")

    assert bus is not None
    assert [type(o).__name__ for o in bus._observers] == ["LogObserver", "JSONLObserver"]
    assert (tmp_path / "b").is_dir()
