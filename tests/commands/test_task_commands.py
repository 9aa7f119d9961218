"""CLI tests for the task commands (add, list, done, edit, delete, stats)."""

import json

from typer.testing import CliRunner

from todosync.main import app

runner = CliRunner()


def _list_json(*args: str) -> list[dict]:
    result = runner.invoke(app, ["list", "--json", *args])
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


def _add(title: str, *args: str) -> str:
    result = runner.invoke(app, ["add", title, "-o", "json", *args])
    assert result.exit_code == 0, result.output
    return json.loads(result.output)["id"]


def test_add_prints_confirmation(cli_backend):
    result = runner.invoke(app, ["add", "Pay rent", "-p", "high", "-c", "Personal"])

    assert result.exit_code == 0
    assert "Task added: Pay rent" in result.output
    (task,) = _list_json()
    assert task["title"] == "Pay rent"
    assert task["priority"] == "high"
    assert task["category"] == "Personal"


def test_add_with_due_date_and_json_output(cli_backend):
    result = runner.invoke(app, ["add", "File taxes", "--due", "2024-04-15", "-o", "json"])

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["title"] == "File taxes"
    assert data["due_date"].startswith("2024-04-15T00:00:00")
    assert data["completed"] is False


def test_add_blank_title_fails(cli_backend):
    result = runner.invoke(app, ["add", "   "])

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert _list_json() == []


def test_list_empty(cli_backend):
    result = runner.invoke(app, ["list"])

    assert result.exit_code == 0
    assert "No tasks found" in result.output


def test_list_filters_and_sorts(cli_backend):
    _add("Pay rent", "-p", "low")
    _add("Pay phone bill", "-p", "high")
    _add("Call mom")

    titles = [t["title"] for t in _list_json("--search", "pay", "--sort", "priority")]

    assert titles == ["Pay phone bill", "Pay rent"]


def test_done_toggles_by_id_prefix(cli_backend):
    task_id = _add("Pay rent")

    result = runner.invoke(app, ["done", task_id[:8]])
    assert result.exit_code == 0
    assert "as completed" in result.output
    assert _list_json("--status", "completed")[0]["id"] == task_id

    result = runner.invoke(app, ["done", task_id])
    assert "as active" in result.output
    assert _list_json("--status", "completed") == []


def test_done_unknown_id_fails(cli_backend):
    result = runner.invoke(app, ["done", "nope"])

    assert result.exit_code == 1
    assert "Task not found" in result.output


def test_edit_changes_only_given_fields(cli_backend):
    task_id = _add("Pay rent", "-d", "by card", "--due", "2024-04-01")

    result = runner.invoke(app, ["edit", task_id, "--title", "Pay March rent", "--clear-due"])

    assert result.exit_code == 0
    (task,) = _list_json()
    assert task["title"] == "Pay March rent"
    assert task["description"] == "by card"
    assert "due_date" not in task


def test_edit_without_options_fails(cli_backend):
    task_id = _add("Pay rent")

    result = runner.invoke(app, ["edit", task_id])

    assert result.exit_code == 1
    assert "Nothing to change" in result.output


def test_delete_asks_for_confirmation(cli_backend):
    task_id = _add("Pay rent")

    result = runner.invoke(app, ["delete", task_id], input="n\n")
    assert "Cancelled" in result.output
    assert len(_list_json()) == 1

    result = runner.invoke(app, ["delete", task_id, "--force"])
    assert result.exit_code == 0
    assert "Task deleted: Pay rent" in result.output
    assert _list_json() == []


def test_stats_json(cli_backend):
    first = _add("Pay rent")
    _add("Call mom")
    runner.invoke(app, ["done", first])

    result = runner.invoke(app, ["stats", "-o", "json"])

    assert result.exit_code == 0
    stats = json.loads(result.output)
    assert stats["total"] == 2
    assert stats["completed"] == 1
    assert stats["completion_rate"] == 50


def test_tasks_persist_in_json_store(cli_backend, tmp_path):
    _add("Pay rent")

    stored = json.loads((tmp_path / "storage.json").read_text(encoding="utf-8"))
    (record,) = json.loads(stored["@tasks_local"])
    assert record["title"] == "Pay rent"
    assert record["createdAt"].endswith("Z")
