"""Tests for the opdoc CLI."""

import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from opdoc.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """No project-local or user-global config leaks into CLI tests."""
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    with patch("opdoc.config.loader.Path.home", return_value=tmp_path / "home"):
        yield workdir


@pytest.fixture
def quiet_config(tmp_path):
    cfg = tmp_path / "quiet.yaml"
    cfg.write_text("log_level: error\n")
    return cfg


@pytest.fixture
def doc(isolated_config, record):
    """Documents live in the working directory so table rows stay short."""
    (isolated_config / "hello.op").write_text(record("create", "hello.txt", "hi"))
    return "hello.op"


@pytest.fixture
def bad_doc(isolated_config, record):
    (isolated_config / "bad.op").write_text(record("delete", "ghost.txt"))
    return "bad.op"


# ── apply / check ──────────────────────────────────────────────────


class TestApply:
    def test_apply_creates_file(self, project, doc):
        result = runner.invoke(app, ["apply", doc, "--root", str(project)])
        assert result.exit_code == 0, result.output
        assert (project / "hello.txt").read_text() == "hi"
        assert "ok" in result.output

    def test_failure_exits_nonzero(self, project, bad_doc):
        result = runner.invoke(app, ["apply", bad_doc, "--root", str(project)])
        assert result.exit_code == 1
        assert "failed" in result.output

    def test_verbose_prints_trail(self, project, bad_doc):
        result = runner.invoke(app, ["apply", bad_doc, "--root", str(project), "--verbose"])
        assert result.exit_code == 1
        assert "plan.precondition" in result.output
        assert "txn 0" in result.output

    def test_dry_run_writes_nothing(self, project, doc):
        result = runner.invoke(app, ["apply", doc, "--root", str(project), "--dry-run"])
        assert result.exit_code == 0, result.output
        assert "would commit" in result.output
        assert not (project / "hello.txt").exists()

    def test_check_writes_nothing(self, project, doc):
        result = runner.invoke(app, ["check", doc, "--root", str(project)])
        assert result.exit_code == 0, result.output
        assert not (project / "hello.txt").exists()

    def test_json_format(self, project, doc, quiet_config):
        result = runner.invoke(
            app, ["--config", str(quiet_config), "apply", doc, "--root", str(project), "--format", "json"]
        )
        assert result.exit_code == 0, result.output
        reports = json.loads(result.stdout)
        assert reports[0]["outcome"] == "ok"
        assert reports[0]["changed_paths"] == ["hello.txt"]

    def test_directory_of_documents(self, project, isolated_config, record):
        docs = isolated_config / "docs"
        docs.mkdir()
        (docs / "1.op").write_text(record("create", "a.txt", "a"))
        (docs / "2.op").write_text(record("create", "b.txt", "b"))
        result = runner.invoke(app, ["apply", "docs", "--root", str(project), "--jobs", "2"])
        assert result.exit_code == 0, result.output
        assert sorted(p.name for p in project.iterdir()) == ["a.txt", "b.txt"]

    def test_continue_on_error_flag(self, project, isolated_config, record):
        docs = isolated_config / "docs"
        docs.mkdir()
        (docs / "1.op").write_text(record("delete", "ghost.txt"))
        (docs / "2.op").write_text(record("create", "b.txt", "b"))
        result = runner.invoke(app, ["apply", "docs", "--root", str(project), "--continue-on-error"])
        assert result.exit_code == 1
        assert (project / "b.txt").exists()

    def test_empty_directory(self, project, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        result = runner.invoke(app, ["apply", str(empty), "--root", str(project)])
        assert result.exit_code == 0
        assert "No operation documents found" in result.output

    def test_missing_path(self, project, tmp_path):
        result = runner.invoke(app, ["apply", str(tmp_path / "nope.op"), "--root", str(project)])
        assert result.exit_code == 1

    def test_bad_jobs(self, project, doc):
        result = runner.invoke(app, ["apply", doc, "--root", str(project), "--jobs", "0"])
        assert result.exit_code == 1

    def test_bad_root(self, doc, tmp_path):
        result = runner.invoke(app, ["apply", doc, "--root", str(tmp_path / "missing")])
        assert result.exit_code == 1

    def test_stale_artifacts_cleaned_on_start(self, project, doc):
        stale = project / ".old.txt.0123456789ab.opdoc-stage"
        stale.write_text("left over")
        result = runner.invoke(app, ["apply", doc, "--root", str(project)])
        assert result.exit_code == 0, result.output
        assert not stale.exists()

    def test_missing_configured_capability(self, project, doc, tmp_path):
        cfg = tmp_path / "caps.yaml"
        cfg.write_text('capabilities:\n  ".rs": "no_such_module_xyz:Rust"\n')
        result = runner.invoke(app, ["--config", str(cfg), "apply", doc, "--root", str(project)])
        assert result.exit_code == 1
        assert "no_such_module_xyz" in result.output


# ── Other commands ─────────────────────────────────────────────────


class TestCommands:
    def test_capabilities(self):
        result = runner.invoke(app, ["capabilities"])
        assert result.exit_code == 0
        assert ".py" in result.output
        assert "python" in result.output
        assert "passthrough" in result.output

    def test_clean(self, project):
        stale = project / ".a.txt.0123456789ab.opdoc-stage"
        stale.write_text("")
        result = runner.invoke(app, ["clean", "--root", str(project)])
        assert result.exit_code == 0
        assert "1 staging artifact" in result.output
        assert not stale.exists()

    def test_clean_dry_run(self, project):
        stale = project / ".a.txt.0123456789ab.opdoc-stage"
        stale.write_text("")
        result = runner.invoke(app, ["clean", "--root", str(project), "--dry-run"])
        assert result.exit_code == 0
        assert "1 staging artifact(s) found" in result.output
        assert stale.exists()

    def test_config_show(self):
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "max_parallelism" in result.output

    def test_config_init(self, isolated_config):
        result = runner.invoke(app, ["config", "init"])
        assert result.exit_code == 0
        assert (isolated_config / "opdoc.yaml").exists()

        again = runner.invoke(app, ["config", "init"])
        assert again.exit_code == 1
        forced = runner.invoke(app, ["config", "init", "--force"])
        assert forced.exit_code == 0

    def test_bad_config_path(self, tmp_path):
        result = runner.invoke(app, ["--config", str(tmp_path / "nope.yaml"), "capabilities"])
        assert result.exit_code == 1
