"""Tests for the command line interface."""

import json

import pytest
import yaml
from click.testing import CliRunner
from rich.console import Console

import dumbwatch.storage
from dumbwatch.cli import cli
from dumbwatch.clustering import cluster as cluster_module
from dumbwatch.clustering import trigger
from dumbwatch.errors import UpstreamUnavailable
from dumbwatch.models import Cluster, RunResult


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("tinybird:\n  token: test-token\n")
    return str(path)


def _result():
    c = Cluster(
        cluster_id="cluster_1_abc",
        member_ids=["s1", "s2"],
        representative_texts=["login crash on startup", "login crash again"],
        summary="Issues related to: login, crash, startup (2 reports)",
    )
    return RunResult(events_processed=4, clusters_created=1, message="Clustering completed successfully", clusters=[c])


def test_cluster_command(monkeypatch, config_file):
    seen = {}

    def fake_run(config, store=None):
        seen["threshold"] = config["clustering"]["threshold"]
        return _result()

    monkeypatch.setattr(cluster_module, "run_clustering", fake_run)
    result = CliRunner().invoke(cli, ["--config", config_file, "cluster", "--threshold", "0.4"])
    assert result.exit_code == 0
    assert "Created 1 cluster(s) from 4 report(s)" in result.output
    assert "login, crash, startup" in result.output
    assert seen["threshold"] == 0.4


def test_cluster_command_failure(monkeypatch, config_file):
    def fake_run(config, store=None):
        raise UpstreamUnavailable("Tinybird query failed: 503")

    monkeypatch.setattr(cluster_module, "run_clustering", fake_run)
    result = CliRunner().invoke(cli, ["--config", config_file, "cluster"])
    assert result.exit_code == 1
    assert "503" in result.output


def test_cluster_command_json(monkeypatch, config_file):
    monkeypatch.setattr(trigger, "run_clustering", lambda config, store=None: _result())
    result = CliRunner().invoke(cli, ["--config", config_file, "cluster", "--json"])
    assert result.exit_code == 0
    assert json.loads(result.output) == {
        "success": True,
        "message": "Clustering completed successfully",
        "events_processed": 4,
        "clusters_created": 1,
    }


def test_clusters_command(monkeypatch, config_file, fake_store):
    monkeypatch.setattr("dumbwatch.cli.console", Console(width=200))
    store = fake_store()
    store.appended.append([_result().clusters[0].to_row()])
    monkeypatch.setattr(dumbwatch.storage, "get_event_store", lambda config: store)

    result = CliRunner().invoke(cli, ["--config", config_file, "clusters"])
    assert result.exit_code == 0
    assert "login crash on startup" in result.output
    assert store.closed


def test_clusters_command_empty(monkeypatch, config_file, fake_store):
    monkeypatch.setattr(dumbwatch.storage, "get_event_store", lambda config: fake_store())
    result = CliRunner().invoke(cli, ["--config", config_file, "clusters"])
    assert result.exit_code == 0
    assert "No clusters yet" in result.output


def test_init_writes_config(tmp_path):
    target = tmp_path / "dw" / "config.yaml"
    result = CliRunner().invoke(cli, ["init", "--path", str(target)])
    assert result.exit_code == 0
    cfg = yaml.safe_load(target.read_text())
    assert cfg["clustering"]["threshold"] == 0.7

    again = CliRunner().invoke(cli, ["init", "--path", str(target)])
    assert "already exists" in again.output


def _fake_record(calls, embedding=(0.1, 0.2)):
    def record(config, session_id, model_name, text=None, entry_path="search_tab", trigger=True, **kwargs):
        calls.append({"session_id": session_id, "model_name": model_name, "text": text,
                      "entry_path": entry_path, "trigger": trigger})
        return {"session_id": session_id, "model_name": model_name, "embedding": list(embedding)}
    return record


def test_report_command_clusters_in_foreground(monkeypatch, config_file):
    calls, runs = [], []
    monkeypatch.setattr("dumbwatch.reports.record_report", _fake_record(calls))

    def fake_response(config, store=None):
        runs.append(config)
        return {"success": True, "message": "ok", "events_processed": 3, "clusters_created": 1}, 200

    monkeypatch.setattr(trigger, "clustering_response", fake_response)
    result = CliRunner().invoke(cli, [
        "--config", config_file, "report", "gpt-x", "keeps forgetting the context",
        "--session", "sess-1", "--entry-path", "overview_tab",
    ])
    assert result.exit_code == 0
    assert "Report recorded (sess-1)" in result.output
    assert "1 cluster(s) created" in result.output
    assert calls == [{"session_id": "sess-1", "model_name": "gpt-x", "text": "keeps forgetting the context",
                      "entry_path": "overview_tab", "trigger": False}]
    assert len(runs) == 1


def test_report_command_no_cluster(monkeypatch, config_file):
    calls, runs = [], []
    monkeypatch.setattr("dumbwatch.reports.record_report", _fake_record(calls))
    monkeypatch.setattr(trigger, "clustering_response", lambda config, store=None: runs.append(config))

    result = CliRunner().invoke(cli, ["--config", config_file, "report", "gpt-x", "slow today", "--no-cluster"])
    assert result.exit_code == 0
    assert len(calls) == 1
    assert calls[0]["session_id"]
    assert runs == []


def test_report_without_embedding_skips_clustering(monkeypatch, config_file):
    runs = []
    monkeypatch.setattr("dumbwatch.reports.record_report", _fake_record([], embedding=()))
    monkeypatch.setattr(trigger, "clustering_response", lambda config, store=None: runs.append(config))

    result = CliRunner().invoke(cli, ["--config", config_file, "report", "gpt-x"])
    assert result.exit_code == 0
    assert runs == []


def test_report_command_rejects_bad_input(monkeypatch, config_file):
    def reject(config, **kwargs):
        raise ValueError("Missing required fields: model_name, session_id")

    monkeypatch.setattr("dumbwatch.reports.record_report", reject)
    result = CliRunner().invoke(cli, ["--config", config_file, "report", "gpt-x", "some text"])
    assert result.exit_code == 1
    assert "Missing required fields" in result.output


def test_report_command_bad_entry_path(config_file):
    result = CliRunner().invoke(cli, ["--config", config_file, "report", "gpt-x", "--entry-path", "sidebar"])
    assert result.exit_code == 2


class FakeScheduler:
    instances = []

    def __init__(self, config, interval_minutes=60):
        self.config = config
        self.interval_minutes = interval_minutes
        self.ran = False
        FakeScheduler.instances.append(self)

    def run(self):
        self.ran = True


@pytest.mark.parametrize("args, minutes", [([], 60), (["--interval", "15"], 15)])
def test_watch_command(monkeypatch, config_file, args, minutes):
    FakeScheduler.instances = []
    monkeypatch.setattr("dumbwatch.scheduler.ClusteringScheduler", FakeScheduler)

    result = CliRunner().invoke(cli, ["--config", config_file, "watch", *args])
    assert result.exit_code == 0
    [scheduler] = FakeScheduler.instances
    assert scheduler.interval_minutes == minutes
    assert scheduler.ran
    assert "clustering" in scheduler.config
