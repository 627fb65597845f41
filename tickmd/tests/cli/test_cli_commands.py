"""
Tests for the tick command line.

Tests cover:
- init/add/status through the argument parser
- claim, done, comment, and reopen exit codes and output
- Error reporting on stderr with suggestions
- validate, agent, locks, notify, compact, and batch commands
- archive, backup, undo, and repair commands
"""

import argparse
import json

import pytest

from tickmd.cli import TickCLI
from tickmd.tick import build_parser, main


@pytest.fixture
def tick(tmp_path):
    """Run the tick entry point against a temporary project without git."""

    def run(*args):
        return main(["--dir", str(tmp_path), "--no-commit", *args])

    return run


@pytest.fixture
def initialized(tick, capsys):
    """A project with one task, output from setup discarded."""
    assert tick("init", "--name", "demo") == 0
    assert tick("add", "Write parser", "--by", "@alice", "--tags", "core,parser") == 0
    capsys.readouterr()
    return tick


class TestParser:
    def test_no_command_prints_help(self, capsys):
        """Test running without a command exits 1 with usage."""
        assert main([]) == 1
        assert "usage: tick" in capsys.readouterr().out

    def test_commit_flags_exclusive(self):
        """Test --commit and --no-commit cannot be combined."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--commit", "--no-commit", "status"])

    def test_invalid_priority_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["add", "T", "--by", "@a", "--priority", "someday"])

    def test_defaults(self):
        args = build_parser().parse_args(["add", "T", "--by", "@a"])
        assert args.priority == "medium"
        assert args.auto_commit is None


class TestInitAndAdd:
    def test_init(self, tick, tmp_path, capsys):
        """Test init creates the document and side files."""
        assert tick("init", "--name", "demo", "--prefix", "WEB") == 0

        out = capsys.readouterr().out
        assert "Initialized project 'demo'" in out
        assert "WEB-001" in out
        assert (tmp_path / "TICK.md").exists()
        assert (tmp_path / ".tick" / "config.yml").exists()

    def test_init_twice_fails(self, tick, capsys):
        """Test a second init without --force is refused."""
        tick("init")
        assert tick("init") == 1
        err = capsys.readouterr().err
        assert "already exists" in err
        assert "--force" in err

    def test_add(self, tick, capsys):
        """Test add prints the new ID and fields."""
        tick("init")
        capsys.readouterr()

        code = tick("add", "Write parser", "--by", "@alice", "--tags", "core, parser", "--assign", "@bob")

        out = capsys.readouterr().out
        assert code == 0
        assert "Created TASK-001: Write parser" in out
        assert "Tags: core, parser" in out
        assert "Assigned to: @bob" in out

    def test_add_without_project(self, tick, capsys):
        """Test commands outside a project report how to initialize one."""
        assert tick("add", "Orphan", "--by", "@alice") == 1
        assert "tick init" in capsys.readouterr().err


class TestStatus:
    def test_grouped_output(self, initialized, capsys):
        assert initialized("status") == 0
        out = capsys.readouterr().out
        assert "Project: demo" in out
        assert "BACKLOG (1):" in out
        assert "TASK-001 · Write parser (backlog, medium)" in out

    def test_json(self, initialized, capsys):
        """Test --json emits the task list with titles."""
        assert initialized("status", "--json") == 0

        data = json.loads(capsys.readouterr().out)
        [task] = data["tasks"]
        assert data["project"] == "demo"
        assert task["id"] == "TASK-001"
        assert task["title"] == "Write parser"
        assert task["tags"] == ["core", "parser"]

    def test_unknown_id(self, initialized, capsys):
        assert initialized("status", "--id", "TASK-999") == 1
        assert "No task found" in capsys.readouterr().err


class TestTransitions:
    def test_claim_then_conflict(self, initialized, capsys):
        """Test a second claim fails and names the holder."""
        assert initialized("claim", "TASK-001", "@alice") == 0
        assert "Claimed TASK-001" in capsys.readouterr().out

        assert initialized("claim", "TASK-001", "@bob") == 1

        err = capsys.readouterr().err
        assert "Error: Task TASK-001 is already locked by @alice" in err
        assert "tick release TASK-001 @alice" in err

    def test_claim_unknown_task_suggests(self, initialized, capsys):
        """Test a mistyped ID lists similar IDs."""
        initialized("add", "Second", "--by", "@alice")
        capsys.readouterr()

        assert initialized("claim", "TASK-003", "@alice") == 1

        err = capsys.readouterr().err
        assert "Task not found: TASK-003" in err
        assert "Did you mean: TASK-002?" in err

    def test_done_reports_ready_dependents(self, initialized, capsys):
        """Test completing a task lists the dependents it unblocked."""
        initialized("add", "Use parser", "--by", "@alice", "--depends-on", "TASK-001")
        initialized("edit", "TASK-002", "@alice", "--status", "blocked")
        initialized("claim", "TASK-001", "@alice")
        capsys.readouterr()

        assert initialized("done", "TASK-001", "@alice") == 0

        out = capsys.readouterr().out
        assert "Completed TASK-001" in out
        assert "Ready: TASK-002 · Use parser" in out

    def test_done_skips_dependents_already_ready(self, initialized, capsys):
        """Test a dependent that was already todo is not reported as ready."""
        initialized("add", "Use parser", "--by", "@alice", "--depends-on", "TASK-001")
        initialized("edit", "TASK-002", "@alice", "--status", "todo")
        capsys.readouterr()

        assert initialized("done", "TASK-001", "@alice") == 0

        out = capsys.readouterr().out
        assert "Completed TASK-001" in out
        assert "Ready:" not in out

    def test_claim_done_task(self, initialized, capsys):
        """Test claiming a done task suggests reopen."""
        initialized("done", "TASK-001", "@alice")
        capsys.readouterr()

        assert initialized("claim", "TASK-001", "@bob") == 1
        assert "tick reopen TASK-001" in capsys.readouterr().err

    def test_comment_and_reopen(self, initialized, capsys):
        initialized("done", "TASK-001", "@alice")
        assert initialized("comment", "TASK-001", "@bob", "--note", "Found a bug") == 0
        assert initialized("reopen", "TASK-001", "@bob", "--note", "Bug in edge case") == 0

        out = capsys.readouterr().out
        assert "Comment added to TASK-001" in out
        assert "Reopened TASK-001" in out

    def test_release_without_claim(self, initialized, capsys):
        assert initialized("release", "TASK-001", "@alice") == 1
        assert "not claimed" in capsys.readouterr().err


class TestEditAndDelete:
    def test_edit(self, initialized, capsys):
        assert initialized("edit", "TASK-001", "@alice", "--priority", "urgent", "--due", "2026-03-01") == 0
        assert "priority: medium → urgent" in capsys.readouterr().out

        initialized("status", "--json")
        [task] = json.loads(capsys.readouterr().out)["tasks"]
        assert task["priority"] == "urgent"
        assert task["due_date"] == "2026-03-01"

    def test_edit_cycle_rejected(self, initialized, capsys):
        """Test an edit creating a cycle fails with the cycle path."""
        initialized("add", "Use parser", "--by", "@alice", "--depends-on", "TASK-001")
        capsys.readouterr()

        assert initialized("edit", "TASK-001", "@alice", "--depends-on", "TASK-002") == 1
        assert "Circular dependency detected" in capsys.readouterr().err

    def test_delete(self, initialized, capsys):
        assert initialized("delete", "TASK-001", "@alice") == 0
        assert "Task deleted: TASK-001 · Write parser" in capsys.readouterr().out


class TestValidate:
    def test_valid_project(self, initialized, capsys):
        assert initialized("validate") == 0
        assert "TICK.md is valid" in capsys.readouterr().out

    def test_json_reports_errors(self, initialized, tmp_path, capsys):
        """Test a broken reference makes validate fail."""
        path = tmp_path / "TICK.md"
        path.write_text(
            path.read_text(encoding="utf-8").replace("priority: medium", "priority: medium\ndepends_on:\n- TASK-404"),
            encoding="utf-8",
        )

        assert initialized("validate", "--json") == 1

        data = json.loads(capsys.readouterr().out)
        assert data["valid"] is False
        assert any("TASK-404" in error["message"] for error in data["errors"])


class TestAgentsAndLocks:
    def test_register_and_list(self, initialized, capsys):
        assert initialized("agent", "register", "@ci-bot", "--type", "bot", "--roles", "tester,ci") == 0
        assert initialized("agent", "list") == 0

        out = capsys.readouterr().out
        assert "Registered @ci-bot (bot, tester, ci, restricted)" in out
        assert "@ci-bot (bot) idle" in out

    def test_locks_list(self, initialized, capsys):
        assert initialized("locks", "list") == 0
        assert "No locks held" in capsys.readouterr().out

        initialized("claim", "TASK-001", "@alice")
        initialized("locks", "list")
        assert "TASK-001  @alice" in capsys.readouterr().out

    def test_compact_nothing_to_do(self, initialized, capsys):
        assert initialized("compact", "@alice") == 0
        assert "or fewer history entries" in capsys.readouterr().out


class TestMaintenance:
    """archive, archived, backup, and repair."""

    def test_archive_and_list(self, initialized, tmp_path, capsys):
        initialized("done", "TASK-001", "@alice")
        capsys.readouterr()

        assert initialized("archive", "@alice") == 0
        out = capsys.readouterr().out
        assert "TASK-001 · Write parser" in out
        assert "Archived 1 task(s)" in out
        assert (tmp_path / "ARCHIVE.md").exists()

        assert initialized("archived") == 0
        assert "TASK-001 · Write parser  (archived " in capsys.readouterr().out

    def test_archive_nothing(self, initialized, capsys):
        assert initialized("archive", "@alice", "--dry-run") == 0
        assert "No tasks to archive" in capsys.readouterr().out

    def test_archive_bad_cutoff(self, initialized, capsys):
        assert initialized("archive", "@alice", "--before", "soon") == 1
        assert "Invalid date format: soon" in capsys.readouterr().err

    def test_archived_empty(self, initialized, capsys):
        assert initialized("archived") == 0
        assert "No archived tasks" in capsys.readouterr().out

    def test_backup_create_list_restore(self, initialized, tmp_path, capsys):
        assert initialized("backup", "list") == 0
        assert "No backups found" in capsys.readouterr().out

        assert initialized("backup", "create") == 0
        assert "Backup created: TICK-" in capsys.readouterr().out
        initialized("add", "Added after backup", "--by", "@alice")
        capsys.readouterr()

        assert initialized("backup", "list") == 0
        assert capsys.readouterr().out.lstrip().startswith("0  ")

        assert initialized("backup", "restore", "0") == 0
        out = capsys.readouterr().out
        assert "Restored TICK.md from TICK-" in out
        assert "Previous version saved as TICK-" in out
        assert "Added after backup" not in (tmp_path / "TICK.md").read_text(encoding="utf-8")

    def test_backup_show_and_clean(self, initialized, tmp_path, capsys):
        initialized("backup", "create")
        capsys.readouterr()

        assert initialized("backup", "show", "0") == 0
        assert capsys.readouterr().out == (tmp_path / "TICK.md").read_text(encoding="utf-8")

        assert initialized("backup", "clean", "--keep", "0") == 0
        assert "Removed 1 backup(s)" in capsys.readouterr().out

    def test_backup_restore_unknown(self, initialized, capsys):
        assert initialized("backup", "restore", "5") == 1
        err = capsys.readouterr().err
        assert "Backup not found: 5" in err
        assert "tick backup list" in err

    def test_undo_outside_git(self, initialized, capsys):
        assert initialized("undo") == 1
        assert "Not a git repository" in capsys.readouterr().err

    def test_repair(self, initialized, tmp_path, capsys):
        path = tmp_path / "TICK.md"
        path.write_text(path.read_text(encoding="utf-8").replace("next_id: 2", "next_id: 1"), encoding="utf-8")

        assert initialized("repair", "--dry-run") == 0
        assert "Would fix:" in capsys.readouterr().out

        assert initialized("repair") == 0
        out = capsys.readouterr().out
        assert "frontmatter: Set next_id to 2" in out
        assert "Backup saved as TICK-" in out

        assert initialized("repair") == 0
        assert "Nothing to repair" in capsys.readouterr().out

    def test_repair_blocked(self, initialized, tmp_path, capsys):
        path = tmp_path / "TICK.md"
        path.write_text(path.read_text(encoding="utf-8").replace("id: TASK-001", "id: [TASK-001"), encoding="utf-8")

        assert initialized("repair") == 1
        assert "fix these by hand first" in capsys.readouterr().out


class TestNotifyAndBatch:
    def test_notify_status_empty(self, initialized, capsys):
        assert initialized("notify", "status") == 0
        assert "Pending: 0  Failed: 0  Total: 0" in capsys.readouterr().out

    def test_notify_list_without_config(self, initialized, capsys):
        assert initialized("notify", "list") == 0
        assert "No notification webhooks configured" in capsys.readouterr().out

    def test_notify_remove_unknown(self, initialized, capsys):
        assert initialized("notify", "remove", "nope") == 1

    def test_batch_abort(self, initialized, tmp_path, capsys):
        """Test batch start creates the marker and abort removes it."""
        assert initialized("batch", "start") == 0
        assert (tmp_path / ".tick" / "batch").exists()

        assert initialized("batch", "abort") == 0
        assert not (tmp_path / ".tick" / "batch").exists()
        assert "without committing" in capsys.readouterr().out


class TestTickCLI:
    """Handlers driven directly with a Namespace."""

    def test_handler_return_codes(self, tmp_path, capsys):
        cli = TickCLI(tmp_path, auto_commit=False)
        init_args = argparse.Namespace(name="direct", prefix="OPS", title=None, force=False)
        assert cli.cmd_init(init_args) == 0
        capsys.readouterr()

        status_args = argparse.Namespace(id=None, status=None, json=True)
        assert cli.cmd_status(status_args) == 0
        data = json.loads(capsys.readouterr().out)
        assert data == {"project": "direct", "tasks": [], "agents": []}

    def test_finds_root_from_subdirectory(self, tmp_path):
        """Test the project root is discovered above the given directory."""
        TickCLI(tmp_path, auto_commit=False).project.init(project="nested")
        nested = tmp_path / "src"
        nested.mkdir()

        assert TickCLI(nested).project.paths.root == tmp_path.resolve()
