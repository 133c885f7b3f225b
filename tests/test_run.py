"""Tests for the run.py entrypoint helpers."""

from __future__ import annotations

from types import SimpleNamespace

from typer.testing import CliRunner

import run


def _setup_serve(monkeypatch, tmp_path, **serve_kwargs):
    captured = {}

    monkeypatch.setattr(
        run,
        "initialize_app",
        lambda: SimpleNamespace(storage_root=tmp_path),
    )
    monkeypatch.setattr(run, "_prepare_logging", lambda storage_root: None)
    monkeypatch.setattr(run, "ProgressRepository", lambda config: object())

    dummy_app = SimpleNamespace(state=SimpleNamespace())

    def _create_app(repository, config, root_path):
        captured["root_path"] = root_path
        return dummy_app

    monkeypatch.setattr(run, "create_app", _create_app)

    class DummyConfig:
        def __init__(self, app, **kwargs):
            captured["app"] = app
            captured["config_kwargs"] = kwargs

    class DummyServer:
        def __init__(self, config):
            captured["server_config"] = config
            captured["server_instance"] = self

        def run(self):
            captured["server_run"] = True

    class DummyThread:
        def __init__(self, target, daemon):
            self._target = target
            captured["thread_daemon"] = daemon

        def start(self):
            captured["thread_started"] = True

    monkeypatch.setattr(run.uvicorn, "Config", DummyConfig)
    monkeypatch.setattr(run.uvicorn, "Server", DummyServer)
    monkeypatch.setattr(run.threading, "Thread", DummyThread)
    monkeypatch.setattr(run.webbrowser, "open", lambda *args, **kwargs: True)

    run.serve(host="0.0.0.0", port=9000, **serve_kwargs)

    captured["app_state_server"] = dummy_app.state.server
    return captured


def test_serve_normalises_root_path_and_starts_server(monkeypatch, tmp_path):
    captured = _setup_serve(monkeypatch, tmp_path, root_path="api/", open_browser=True)

    assert captured["root_path"] == "/api"
    assert captured["config_kwargs"]["root_path"] == "/api"
    assert captured["config_kwargs"]["port"] == 9000
    assert captured["app_state_server"] is captured["server_instance"]
    assert captured["server_run"] is True
    assert captured["thread_started"] is True


def test_serve_can_skip_browser(monkeypatch, tmp_path):
    captured = _setup_serve(monkeypatch, tmp_path, root_path=None, open_browser=False)

    assert captured["root_path"] == ""
    assert "thread_started" not in captured


def _use_config(monkeypatch, temp_config) -> None:
    monkeypatch.setattr(run, "initialize_app", lambda: temp_config)
    monkeypatch.setattr(run, "_prepare_logging", lambda storage_root: None)


def test_scan_command_summarises_materials(monkeypatch, temp_config, make_material):
    _use_config(monkeypatch, temp_config)
    make_material("Math/sem1/teoria/a.pdf")
    make_material("Math/sem2/teoria/b.pdf")
    make_material("Art/sem1/c.pdf")

    result = CliRunner().invoke(run.cli, ["scan"])

    assert result.exit_code == 0, result.output
    assert "Math: 2 PDF(s)" in result.output
    assert "weeks 1, 2" in result.output
    assert "Total: 3 PDF(s) across 2 subject(s)" in result.output


def test_sync_totals_command_writes_counters(monkeypatch, temp_config, make_material):
    _use_config(monkeypatch, temp_config)
    make_material("Math/sem1/teoria/a.pdf")
    make_material("Math/sem1/practica/b.pdf")

    result = CliRunner().invoke(run.cli, ["sync-totals"])

    assert result.exit_code == 0, result.output
    assert "Math/theory: 0/1" in result.output
    assert "Math/practice: 0/1" in result.output


def test_queue_command_console_style(monkeypatch, temp_config, make_material):
    _use_config(monkeypatch, temp_config)
    make_material("Math/sem1/a.pdf")
    make_material("Art/sem1/b.pdf")

    result = CliRunner().invoke(run.cli, ["queue", "--style", "console", "--today", "3"])

    assert result.exit_code == 0, result.output
    assert "Queue for Wednesday" in result.output
    assert "2 pending of 2 document(s)" in result.output
    assert "> [Art] sem1 b.pdf" in result.output


def test_main_invokes_serve_without_subcommand(monkeypatch):
    calls = []

    def _fake_serve(**kwargs):
        calls.append(kwargs)

    monkeypatch.setattr(run, "serve", _fake_serve)
    ctx = SimpleNamespace(invoked_subcommand=None, invoke=lambda func, **kwargs: func(**kwargs))

    run.main(ctx)

    assert calls == [
        {"host": run.DEFAULT_HOST, "port": run.DEFAULT_PORT, "root_path": None, "open_browser": True}
    ]
