"""Tests for the openflow command line."""

import json
import logging
from pathlib import Path

import pytest

from openflow.cli import build_parser, load_graph, main

EDITOR_GRAPH = {
    "nodes": [
        {"id": "1", "type": "webhook", "label": "Start Trigger"},
        {"id": "2", "type": "ai", "label": "Summarize Email", "config": {"model": "small"}},
        {"id": "3", "type": "discord", "label": "Notify Team"},
    ],
    "edges": [
        {"id": "e1-2", "source": "1", "target": "2"},
        {"id": "e2-3", "source": "2", "target": "3"},
    ],
}


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("OPENFLOW_CONFIG", str(tmp_path / "missing.json"))
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def write_graph(tmp_path, graph, name="workflow.json"):
    path = tmp_path / name
    path.write_text(json.dumps(graph))
    return str(path)


def run_cli(argv) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


def test_run_prints_result_json(tmp_path, capsys):
    graph_path = write_graph(tmp_path, EDITOR_GRAPH)
    store = tmp_path / "store"

    code = run_cli(
        ["run", graph_path, "--input", '{"subject": "hi"}', "--store", str(store), "-q",
         "--log-level", "WARNING"]
    )
    output = json.loads(capsys.readouterr().out)

    assert code == 0
    assert output["status"] == "completed"
    assert output["path"] == ["1", "2", "3"]
    assert output["outputs"]["2"]["model"] == "small"
    assert output["outputs"]["3"]["content"]["completion"] == {"subject": "hi"}
    assert (store / "runs" / output["run_id"] / "state.json").exists()


def test_run_with_failing_node_exits_1(tmp_path, capsys):
    graph = {
        "nodes": [{"id": "a", "type": "webhook"}, {"id": "b", "type": "fail"}],
        "edges": [{"id": "e1", "source": "a", "target": "b"}],
    }
    graph_path = write_graph(tmp_path, graph)

    code = run_cli(["run", graph_path, "--no-save", "-q", "--log-level", "WARNING"])

    assert code == 1
    assert json.loads(capsys.readouterr().out)["failed_nodes"] == ["b"]


def test_run_with_unknown_type_exits_2(tmp_path, capsys):
    graph_path = write_graph(tmp_path, {"nodes": [{"id": "a", "type": "bogus"}], "edges": []})

    code = run_cli(["run", graph_path, "--no-save", "-q", "--log-level", "WARNING"])

    assert code == 2
    assert "Unknown node type: 'bogus'" in capsys.readouterr().err


def test_run_rejects_invalid_input_json(tmp_path):
    graph_path = write_graph(tmp_path, EDITOR_GRAPH)

    code = run_cli(["run", graph_path, "--input", "{nope", "--no-save", "-q"])

    assert str(code).startswith("Invalid JSON for --input")


def test_memory_from_last_run(tmp_path, capsys):
    store = str(tmp_path / "store")
    writer = write_graph(
        tmp_path,
        {"nodes": [{"id": "w", "type": "memory", "config": {"key": "token", "value": "t-1"}}]},
        name="writer.json",
    )
    reader = write_graph(
        tmp_path,
        {"nodes": [{"id": "r", "type": "memory", "config": {"operation": "get", "key": "token"}}]},
        name="reader.json",
    )

    assert run_cli(["run", writer, "--store", store, "-q", "--log-level", "WARNING"]) == 0
    capsys.readouterr()
    assert (
        run_cli(
            ["run", reader, "--store", store, "--memory-from-last", "-q", "--log-level", "WARNING"]
        )
        == 0
    )

    output = json.loads(capsys.readouterr().out)
    assert output["outputs"]["r"] == {"token": "t-1"}


def test_validate_reports_errors_and_warnings(tmp_path, capsys):
    good = write_graph(tmp_path, EDITOR_GRAPH, name="good.json")
    dangling = write_graph(
        tmp_path,
        {
            "nodes": [{"id": "a", "type": "noop"}],
            "edges": [{"id": "e1", "source": "a", "target": "gone"}],
        },
        name="dangling.json",
    )
    unknown = write_graph(tmp_path, {"nodes": [{"id": "a", "type": "bogus"}]}, name="bad.json")

    assert run_cli(["validate", good]) == 0
    assert "3 nodes, 2 edges" in capsys.readouterr().out

    assert run_cli(["validate", dangling]) == 0
    assert "warning: Edge e1 has missing target node 'gone'" in capsys.readouterr().out

    assert run_cli(["validate", unknown]) == 1
    assert "error: Node 'a' has unknown type 'bogus'" in capsys.readouterr().out


def test_validate_unreadable_file(tmp_path, capsys):
    assert run_cli(["validate", str(tmp_path / "nowhere.json")]) == 2
    assert "Invalid workflow" in capsys.readouterr().err


def test_types_lists_catalogue(capsys):
    assert run_cli(["types"]) == 0

    out = capsys.readouterr().out
    assert "discord" in out
    assert "WaitBehavior" in out


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_load_graph(tmp_path):
    graph = load_graph(write_graph(tmp_path, EDITOR_GRAPH))

    assert graph.sources() == ["1"]
    assert graph.get_node("3").display_name == "Notify Team"


def test_bundled_workflows_validate(capsys):
    workflows = Path(__file__).parents[2] / "examples" / "workflows"

    for path in sorted(workflows.glob("*.json")):
        assert run_cli(["validate", str(path)]) == 0
    assert "warning" not in capsys.readouterr().out
