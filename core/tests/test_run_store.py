"""Tests for RunStore persistence and memory carry-over between runs."""

import json
from datetime import datetime, timedelta

import pytest

from openflow.graph.edge import EdgeSpec, GraphSpec
from openflow.graph.executor import ExecutionOptions, WorkflowExecutor
from openflow.graph.node import NodeSpec, NodeState, NodeStatus
from openflow.schemas.run import RunResult, RunStatus
from openflow.storage.run_store import RunStore, atomic_write


def make_result(run_id: str, started_at: datetime, memory=None) -> RunResult:
    return RunResult(
        run_id=run_id,
        graph_id="g",
        status=RunStatus.COMPLETED,
        nodes={"a": NodeState(node_id="a", status=NodeStatus.SUCCESS, last_output={"ok": 1})},
        memory=memory or {},
        path=["a"],
        started_at=started_at,
        completed_at=started_at + timedelta(milliseconds=5),
    )


@pytest.mark.asyncio
async def test_save_and_load_roundtrip(tmp_path):
    store = RunStore(tmp_path)
    result = make_result("run_1", datetime(2024, 1, 1), memory={"k": [1, 2]})

    run_path = await store.save(result)
    loaded = await store.load("run_1")

    assert run_path == tmp_path / "runs" / "run_1"
    assert loaded.memory == {"k": [1, 2]}
    assert loaded.nodes["a"].status == NodeStatus.SUCCESS
    assert loaded.duration_ms == 5
    assert await store.load("missing") is None


@pytest.mark.asyncio
async def test_snapshot_is_flat_json(tmp_path):
    store = RunStore(tmp_path)
    await store.save(make_result("run_1", datetime(2024, 1, 1), memory={"user": "ada"}))

    snapshot = await store.load_snapshot("run_1")
    on_disk = json.loads((tmp_path / "runs" / "run_1" / "snapshot.json").read_text())

    assert snapshot == on_disk
    assert snapshot["memory.user"] == "ada"
    assert snapshot["nodes.a.status"] == "success"
    assert snapshot["nodes.a.output"] == {"ok": 1}
    assert snapshot["status"] == "completed"


@pytest.mark.asyncio
async def test_list_runs_newest_first_and_skips_corrupt(tmp_path):
    store = RunStore(tmp_path)
    await store.save(make_result("old", datetime(2024, 1, 1), memory={"n": 1}))
    await store.save(make_result("new", datetime(2024, 6, 1), memory={"n": 2}))

    corrupt = tmp_path / "runs" / "broken"
    corrupt.mkdir()
    (corrupt / "state.json").write_text("{not json")

    runs = await store.list_runs()

    assert [r.run_id for r in runs] == ["new", "old"]
    assert await store.latest_memory() == {"n": 2}
    assert await store.load_memory("old") == {"n": 1}


@pytest.mark.asyncio
async def test_empty_store(tmp_path):
    store = RunStore(tmp_path / "nothing-here")

    assert await store.list_runs() == []
    assert await store.latest_memory() is None
    assert not await store.delete("run_1")


@pytest.mark.asyncio
async def test_delete(tmp_path):
    store = RunStore(tmp_path)
    await store.save(make_result("run_1", datetime(2024, 1, 1)))

    assert await store.delete("run_1")
    assert not (tmp_path / "runs" / "run_1").exists()


def test_atomic_write_leaves_no_partial_file(tmp_path):
    target = tmp_path / "state.json"
    target.write_text("original")

    with pytest.raises(RuntimeError):
        with atomic_write(target) as f:
            f.write("half")
            raise RuntimeError("crash")

    assert target.read_text() == "original"
    assert list(tmp_path.iterdir()) == [target]


@pytest.mark.asyncio
async def test_memory_persists_across_runs_through_the_store(tmp_path):
    store = RunStore(tmp_path)
    executor = WorkflowExecutor()
    graph = GraphSpec(
        nodes=[
            NodeSpec(id="read", type="memory", config={"operation": "get", "key": "seen"}),
            NodeSpec(id="write", type="memory", config={"key": "seen", "value": True}),
        ],
        edges=[EdgeSpec(id="e1", source="read", target="write")],
    )

    first = await executor.execute(graph, trigger={})
    await store.save(first)
    second = await executor.execute(
        graph,
        trigger={},
        options=ExecutionOptions(initial_memory=await store.latest_memory()),
    )

    assert first.output_of("read") == {"seen": None}
    assert second.output_of("read") == {"seen": True}
