"""Tests for bump_cascade.cli."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from bump_cascade.cli import cli

from .conftest import write_marker, write_package


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def env(store: Path, workspace: Path, monkeypatch: pytest.MonkeyPatch) -> dict[str, str | None]:
    """Environment for running inside the workspace root."""
    monkeypatch.chdir(workspace)
    return {
        "BUMP_CASCADE_STORE": str(store),
        "BUMP_CASCADE_SRC": "/src",
        "BUMP_CASCADE_HOME": None,
        "BUMP_CASCADE_STATE": None,
    }


@pytest.fixture
def session(runner: CliRunner, env: dict[str, str | None], workspace: Path) -> dict[str, str | None]:
    """Start a session for updating a; returns env pointing at it."""
    result = runner.invoke(cli, ["init", "a"], env=env)
    assert result.exit_code == 0, result.output
    return {**env, "BUMP_CASCADE_STATE": str(workspace.resolve() / ".bump-cascade-state.json")}


def _stdout_lines(result) -> list[str]:
    return [line for line in result.output.splitlines() if line.startswith("github.com")]


def _mark(
    runner: CliRunner,
    env: dict[str, str | None],
    pkg_dir: Path,
    monkeypatch: pytest.MonkeyPatch,
    version: str,
    hash: str,
):
    write_marker(pkg_dir, version, hash)
    monkeypatch.chdir(pkg_dir)
    return runner.invoke(cli, ["published"], env=env)


class TestPreview:
    def test_default_output(self, runner: CliRunner, env) -> None:
        result = runner.invoke(cli, ["preview", "a"], env=env)

        assert result.exit_code == 0, result.output
        assert result.output == (
            "github.com/org/a\n"
            "\n"
            "github.com/org/b :: a\n"
            "\n"
            "github.com/org/c :: b\n"
            "\n"
            "github.com/org/app :: c\n"
        )

    def test_list_with_format(self, runner: CliRunner, env) -> None:
        result = runner.invoke(cli, ["preview", "--list", "-f", "$name ${dir}", "b"], env=env)

        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == [
            f"b {Path('/src/github.com/org/b')}",
            f"c {Path('/src/github.com/org/c')}",
            f"app {Path('/src/github.com/org/app')}",
        ]

    def test_json(self, runner: CliRunner, env) -> None:
        result = runner.invoke(cli, ["preview", "--json", "a"], env=env)

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [t["name"] for t in data] == ["a", "b", "c", "app"]
        assert data[2]["also_update"] == ["a"]
        assert "published" not in data[0]

    def test_surrogate_escape(self, runner: CliRunner, env) -> None:
        result = runner.invoke(cli, ["preview", "-f", "$name\\ud800", "a"], env=env)

        assert result.exit_code == 1
        assert "bad format string" in result.output

    def test_unknown_package(self, runner: CliRunner, env) -> None:
        result = runner.invoke(cli, ["preview", "nope"], env=env)

        assert result.exit_code == 1
        assert "package not found: nope" in result.output

    def test_missing_store(self, runner: CliRunner, env) -> None:
        result = runner.invoke(cli, ["preview", "a"], env={**env, "BUMP_CASCADE_STORE": None})

        assert result.exit_code == 1
        assert "no package store configured" in result.output

    def test_two_versions_of_dependent(
        self, runner: CliRunner, split_workspace: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(split_workspace)
        env = {
            "BUMP_CASCADE_STORE": str(split_workspace.parent / "store"),
            "BUMP_CASCADE_HOME": None,
            "BUMP_CASCADE_STATE": None,
        }

        result = runner.invoke(cli, ["preview", "--json", "a"], env=env)

        assert result.exit_code == 1
        assert "duplicate entries for b" in result.output


class TestInit:
    def test_creates_session(self, runner: CliRunner, env, workspace: Path) -> None:
        result = runner.invoke(cli, ["init", "a"], env=env)

        assert result.exit_code == 0, result.output
        path = workspace.resolve() / ".bump-cascade-state.json"
        assert f"export BUMP_CASCADE_STATE={path}" in result.output
        data = json.loads(path.read_text())
        assert [t["name"] for t in data["todo"]] == ["a", "b", "c", "app"]

    def test_refuses_second_session(self, runner: CliRunner, session) -> None:
        result = runner.invoke(cli, ["init", "a"], env=session)

        assert result.exit_code == 1
        assert "already exists" in result.output


class TestStatus:
    def test_needs_session(self, runner: CliRunner, env) -> None:
        result = runner.invoke(cli, ["status"], env=env)

        assert result.exit_code == 1
        assert "BUMP_CASCADE_STATE not set" in result.output

    def test_initial(self, runner: CliRunner, session) -> None:
        result = runner.invoke(cli, ["status"], env=session)

        assert result.exit_code == 0, result.output
        assert _stdout_lines(result) == [
            "github.com/org/a READY",
            "github.com/org/b :: a",
            "github.com/org/c :: b",
            "github.com/org/app :: c",
        ]

    def test_state_prints_session(self, runner: CliRunner, session) -> None:
        result = runner.invoke(cli, ["state"], env=session)

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["todo"][0]["name"] == "a"

    def test_session_commands_need_no_store(self, runner: CliRunner, session) -> None:
        result = runner.invoke(cli, ["state"], env={**session, "BUMP_CASCADE_STORE": None})

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["todo"][0]["name"] == "a"


class TestPublished:
    def test_publish_workflow(
        self, runner: CliRunner, session, store: Path, workspace: Path, monkeypatch
    ) -> None:
        result = _mark(runner, session, store / "QmA" / "a", monkeypatch, "1.1.0", "QmA2")
        assert result.exit_code == 0, result.output

        result = runner.invoke(cli, ["status"], env=session)
        assert _stdout_lines(result)[:2] == [
            "github.com/org/a = QmA2",
            "github.com/org/b READY",
        ]

        # b still records the old hash of a
        b_dir = store / "QmB" / "b"
        result = _mark(runner, session, b_dir, monkeypatch, "2.0.0", "QmB2")
        assert result.exit_code == 1
        assert "could not put b in published state" in result.output

        result = runner.invoke(cli, ["status"], env=session)
        assert "github.com/org/b (INVALIDATED) READY" in _stdout_lines(result)

        write_package(b_dir, "b", "github.com/org/b", [("a", "QmA2")])
        result = _mark(runner, session, b_dir, monkeypatch, "2.0.1", "QmB3")
        assert result.exit_code == 0, result.output

        result = runner.invoke(cli, ["list", "-f", "$name $version", "published"], env=session)
        assert result.output.splitlines() == ["a 1.1.0", "b 2.0.1"]

    def test_reset(self, runner: CliRunner, session, store: Path, monkeypatch) -> None:
        a_dir = store / "QmA" / "a"
        _mark(runner, session, a_dir, monkeypatch, "1.1.0", "QmA2")

        result = runner.invoke(cli, ["published", "reset"], env=session)
        assert result.exit_code == 0, result.output

        result = runner.invoke(cli, ["list", "published"], env=session)
        assert result.output == ""

    def test_clean(self, runner: CliRunner, session, store: Path, monkeypatch) -> None:
        _mark(runner, session, store / "QmA" / "a", monkeypatch, "1.1.0", "QmA2")
        _mark(runner, session, store / "QmB" / "b", monkeypatch, "2.0.0", "QmB2")

        result = runner.invoke(cli, ["published", "clean"], env=session)
        assert result.exit_code == 0, result.output

        result = runner.invoke(cli, ["list", "invalidated"], env=session)
        assert result.output == ""
        result = runner.invoke(cli, ["list", "-f", "$name", "published"], env=session)
        assert result.output == "a\n"

    def test_missing_marker(self, runner: CliRunner, session, store: Path, monkeypatch) -> None:
        monkeypatch.chdir(store / "QmA" / "a")
        result = runner.invoke(cli, ["published"], env=session)

        assert result.exit_code == 1
        assert "lastpubver" in result.output


class TestList:
    def test_condition(self, runner: CliRunner, session) -> None:
        result = runner.invoke(cli, ["list", "ready"], env=session)
        assert result.output == "github.com/org/a\n"

    def test_inverted_condition(self, runner: CliRunner, session) -> None:
        result = runner.invoke(cli, ["list", "-f", "$name", "not", "ready"], env=session)
        assert result.output.splitlines() == ["b", "c", "app"]

    def test_bad_format_aborts(self, runner: CliRunner, session) -> None:
        result = runner.invoke(cli, ["list", "-f", "${name"], env=session)

        assert result.exit_code == 1
        assert "bad format string" in result.output

    def test_unresolved_reports_and_continues(
        self, runner: CliRunner, session, store: Path, monkeypatch
    ) -> None:
        _mark(runner, session, store / "QmA" / "a", monkeypatch, "1.1.0", "QmA2")

        result = runner.invoke(cli, ["list", "-f", "$name $version"], env=session)

        assert result.exit_code == 1
        assert "a 1.1.0" in result.output
        assert "'version' undefined, not yet published" in result.output
        assert "some entries could not be displayed" in result.output

    def test_meta_condition(self, runner: CliRunner, session) -> None:
        runner.invoke(cli, ["meta", "-p", "c", "set", "pr", "99"], env=session)

        result = runner.invoke(cli, ["list", "-f", "$name $pr", "pr"], env=session)
        assert result.output == "c 99\n"


class TestDeps:
    def test_direct_default(self, runner: CliRunner, session) -> None:
        result = runner.invoke(cli, ["deps", "-p", "c"], env=session)
        assert result.output == "github.com/org/b\n"

    def test_also(self, runner: CliRunner, session) -> None:
        result = runner.invoke(cli, ["deps", "-p", "c", "-f", "$name", "also"], env=session)
        assert result.output == "a\n"

    def test_all(self, runner: CliRunner, session) -> None:
        result = runner.invoke(cli, ["deps", "-p", "app", "-f", "$name", "all"], env=session)
        assert result.output.splitlines() == ["a", "b", "c"]

    def test_current_package(self, runner: CliRunner, session) -> None:
        result = runner.invoke(cli, ["deps", "-f", "$name"], env=session)
        assert result.output == "c\n"

    def test_unknown_kind(self, runner: CliRunner, session) -> None:
        result = runner.invoke(cli, ["deps", "sideways"], env=session)
        assert result.exit_code == 2


class TestToPin:
    def test_unpublished(self, runner: CliRunner, session) -> None:
        result = runner.invoke(cli, ["to-pin"], env=session)

        assert result.exit_code == 1
        assert "unpublished dependencies: a b c" in result.output

    def test_prints_pins(self, runner: CliRunner, session, store: Path, monkeypatch) -> None:
        _mark(runner, session, store / "QmA" / "a", monkeypatch, "1.1.0", "QmA2")

        result = runner.invoke(cli, ["to-pin"], env=session)

        assert "QmA2 github.com/org/a 1.1.0" in result.output
        assert "unpublished dependencies: b c" in result.output


class TestMeta:
    def test_set_get(self, runner: CliRunner, session) -> None:
        result = runner.invoke(cli, ["meta", "-p", "a", "set", "pr", "12"], env=session)
        assert result.exit_code == 0, result.output

        result = runner.invoke(cli, ["meta", "-p", "a", "get", "pr"], env=session)
        assert result.output == "12\n"

        result = runner.invoke(cli, ["meta", "-p", "a", "vals"], env=session)
        assert result.output == "pr 12\n"

    def test_unset(self, runner: CliRunner, session) -> None:
        runner.invoke(cli, ["meta", "-p", "a", "set", "pr", "12"], env=session)
        runner.invoke(cli, ["meta", "-p", "a", "unset", "pr"], env=session)

        result = runner.invoke(cli, ["meta", "-p", "a", "get", "pr"], env=session)
        assert result.exit_code == 1
        assert "pr not defined" in result.output

    def test_defaults(self, runner: CliRunner, session) -> None:
        result = runner.invoke(cli, ["meta", "default", "set", "owner", "me"], env=session)
        assert result.exit_code == 0, result.output

        result = runner.invoke(cli, ["meta", "-p", "b", "get", "owner"], env=session)
        assert result.output == "me\n"
        result = runner.invoke(cli, ["list", "-f", "$name:$owner", "not", "ready"], env=session)
        assert result.output.splitlines() == ["b:me", "c:me", "app:me"]

        runner.invoke(cli, ["meta", "default", "unset", "owner"], env=session)
        result = runner.invoke(cli, ["meta", "default", "vals"], env=session)
        assert result.output == ""

    def test_reserved_key(self, runner: CliRunner, session) -> None:
        result = runner.invoke(cli, ["meta", "-p", "a", "set", "hash", "x"], env=session)

        assert result.exit_code == 1
        assert "cannot set internal value: hash" in result.output

    def test_unknown_package(self, runner: CliRunner, session) -> None:
        result = runner.invoke(cli, ["meta", "-p", "zzz", "vals"], env=session)

        assert result.exit_code == 1
        assert "package not found: zzz" in result.output
