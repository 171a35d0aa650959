from __future__ import annotations

import pytest

from codeplanner.errors import StepExecutionError
from codeplanner.execution import ALL_DONE, ExecutionLoop
from codeplanner.plan import PlanStep
from codeplanner.vfs import VirtualFileSystem

from conftest import FakeService


def _plan(*pairs: tuple[str, str]) -> tuple[PlanStep, ...]:
    return tuple(PlanStep(step=i, description=d, file=f) for i, (d, f) in enumerate(pairs, 1))


def test_vfs_reads_absent_paths_as_empty() -> None:
    vfs = VirtualFileSystem()
    assert vfs.read("missing.py") == ""
    assert "missing.py" not in vfs

    vfs.write("a.py", "one")
    vfs.write("a.py", "two")
    assert vfs.read("a.py") == "two"
    assert len(vfs) == 1


def test_vfs_snapshot_is_read_only_copy() -> None:
    vfs = VirtualFileSystem()
    vfs.write("a.py", "x")
    snap = vfs.snapshot()
    vfs.write("b.py", "y")

    assert dict(snap) == {"a.py": "x"}
    with pytest.raises(TypeError):
        snap["c.py"] = "z"  # type: ignore[index]


@pytest.mark.asyncio
async def test_steps_on_same_file_compose() -> None:
    service = FakeService()
    result = await ExecutionLoop(service).run(_plan(("first", "a.py"), ("second", "a.py")))

    assert service.calls == [
        ("first", "a.py", ""),
        ("second", "a.py", "// first\n"),
    ]
    assert dict(result.files) == {"a.py": "// first\n// second\n"}


@pytest.mark.asyncio
async def test_distinct_files_each_start_empty() -> None:
    service = FakeService()
    result = await ExecutionLoop(service).run(_plan(("a", "a.py"), ("b", "b.py")))

    assert [c[2] for c in service.calls] == ["", ""]
    assert dict(result.files) == {"a.py": "// a\n", "b.py": "// b\n"}
    assert result.log[-1] == ALL_DONE


@pytest.mark.asyncio
async def test_runs_in_step_order() -> None:
    service = FakeService()
    plan = (
        PlanStep(step=2, description="later", file="a.py"),
        PlanStep(step=1, description="earlier", file="a.py"),
    )
    await ExecutionLoop(service).run(plan)
    assert [c[0] for c in service.calls] == ["earlier", "later"]


@pytest.mark.asyncio
@pytest.mark.parametrize("k", [0, 1, 2])
async def test_failure_at_k_logs_k_completions_then_failure(k: int) -> None:
    service = FakeService(fail_on_call=k)
    logged: list[str] = []
    loop = ExecutionLoop(service, on_log=logged.append)

    with pytest.raises(StepExecutionError) as exc:
        await loop.run(_plan(("a", "a.py"), ("b", "b.py"), ("c", "c.py")))

    outcomes = [e for e in exc.value.log if "completed" in e or e.startswith("Error")]
    completed = [f"Step {i} ({name}.py) completed." for i, name in enumerate("abc"[:k], 1)]
    assert outcomes[:-1] == completed
    assert outcomes[-1] == f"Error on step {k + 1}: model refused step {k + 1}"
    assert len(service.calls) == k + 1
    assert exc.value.step == k + 1
    assert logged == list(exc.value.log)
    assert ALL_DONE not in exc.value.log


class ExplodingService(FakeService):
    async def execute(self, description: str, file: str, file_content: str) -> str:
        if self.calls:
            raise RuntimeError("unexpected payload")
        return await super().execute(description, file, file_content)


@pytest.mark.asyncio
async def test_unexpected_error_fails_the_step() -> None:
    loop = ExecutionLoop(ExplodingService())

    with pytest.raises(StepExecutionError) as exc:
        await loop.run(_plan(("a", "a.py"), ("b", "a.py")))

    assert exc.value.step == 2
    assert exc.value.log[-1] == "Error on step 2: unexpected payload"
    assert ALL_DONE not in exc.value.log
