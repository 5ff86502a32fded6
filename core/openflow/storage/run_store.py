"""
Run Store - Persist run results between runs.

Layout:
  {base_path}/runs/{run_id}/
      ├── state.json       # Full RunResult
      └── snapshot.json    # Flat JSON-compatible mapping (memory + node outputs)

The last run's memory can seed the next run's shared memory, which is how
memory persists across runs when the caller wants it to.
"""

import asyncio
import json
import logging
import os
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any

from openflow.schemas.run import RunResult

logger = logging.getLogger(__name__)


@contextmanager
def atomic_write(path: Path) -> Iterator[IO[str]]:
    """Write to a temp file in the same directory, then rename over path."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            yield f
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class RunStore:
    """
    File-backed storage for RunResults.

    Example:
        store = RunStore(Path("~/.openflow").expanduser())
        await store.save(result)

        memory = await store.latest_memory()
        options = ExecutionOptions(initial_memory=memory or {})
    """

    def __init__(self, base_path: Path | str):
        self.base_path = Path(base_path)
        self.runs_dir = self.base_path / "runs"

    def get_run_path(self, run_id: str) -> Path:
        return self.runs_dir / run_id

    def get_state_path(self, run_id: str) -> Path:
        return self.get_run_path(run_id) / "state.json"

    async def save(self, result: RunResult) -> Path:
        """Atomically write state.json and snapshot.json for a run."""

        def _write() -> Path:
            run_path = self.get_run_path(result.run_id)
            run_path.mkdir(parents=True, exist_ok=True)

            with atomic_write(run_path / "state.json") as f:
                f.write(result.model_dump_json(indent=2))
            with atomic_write(run_path / "snapshot.json") as f:
                json.dump(result.to_snapshot(), f, indent=2, default=str)
            return run_path

        run_path = await asyncio.to_thread(_write)
        logger.debug(f"Saved run {result.run_id} to {run_path}")
        return run_path

    async def load(self, run_id: str) -> RunResult | None:
        """Load a saved run, or None if it does not exist."""

        def _read() -> RunResult | None:
            state_path = self.get_state_path(run_id)
            if not state_path.exists():
                return None
            return RunResult.model_validate_json(state_path.read_text(encoding="utf-8"))

        return await asyncio.to_thread(_read)

    async def load_snapshot(self, run_id: str) -> dict[str, Any] | None:
        def _read() -> dict[str, Any] | None:
            path = self.get_run_path(run_id) / "snapshot.json"
            if not path.exists():
                return None
            return json.loads(path.read_text(encoding="utf-8"))

        return await asyncio.to_thread(_read)

    async def list_runs(self, limit: int = 100) -> list[RunResult]:
        """Saved runs, most recent first. Unreadable runs are skipped."""

        def _scan() -> list[RunResult]:
            runs: list[RunResult] = []
            if not self.runs_dir.exists():
                return runs

            for run_dir in self.runs_dir.iterdir():
                state_path = run_dir / "state.json"
                if not run_dir.is_dir() or not state_path.exists():
                    continue
                try:
                    runs.append(RunResult.model_validate_json(state_path.read_text(encoding="utf-8")))
                except ValueError as e:
                    logger.warning(f"Failed to load {state_path}: {e}")

            runs.sort(key=lambda r: r.started_at, reverse=True)
            return runs[:limit]

        return await asyncio.to_thread(_scan)

    async def load_memory(self, run_id: str) -> dict[str, Any] | None:
        """Final shared memory of a saved run."""
        result = await self.load(run_id)
        return result.memory if result else None

    async def latest_memory(self) -> dict[str, Any] | None:
        """Final shared memory of the most recent saved run."""
        runs = await self.list_runs(limit=1)
        return runs[0].memory if runs else None

    async def delete(self, run_id: str) -> bool:
        def _delete() -> bool:
            run_path = self.get_run_path(run_id)
            if not run_path.exists():
                return False
            shutil.rmtree(run_path)
            logger.info(f"Deleted run {run_id}")
            return True

        return await asyncio.to_thread(_delete)
