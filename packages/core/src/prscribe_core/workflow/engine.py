"""Sequential workflow engine with once-evaluated branch points.

A Workflow is a statically declared list of steps. Each step is either a
Stage (always runs) or a Branch (a predicate selects one of two named
sub-workflows, which runs to completion before the parent continues).

    Workflow("pr")
        .step(fetch_details)
        .branch("ticket", has_jira, Workflow("ticket").step(fetch_ticket).commit(),
                Workflow("ticket_skip").step(noop_stage("ticket_noop")).commit(),
                static=True)
        .commit()

Execution model:
  - Strictly one stage at a time, in declaration order. No retries, no
    parallelism, no re-planning.
  - Static branch predicates are evaluated in a planning phase before the
    first stage runs; dynamic ones exactly once when the branch is reached.
    Every decision is stored on the WorkflowRun.
  - A stage sees the shared WorkflowState and the immediately preceding
    stage's output through the RunContext, so stages written against either
    channel interoperate.
  - The first stage exception aborts the run. It is re-raised as a
    StageFailedError naming the stage and carrying the partial run.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterator, Optional, Union

import pydantic

from prscribe_core.errors import StageFailedError, ValidationError
from prscribe_core.workflow.state import WorkflowState

logger = logging.getLogger(__name__)


class StageStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunStatus(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class StageRecord:
    stage_id: str
    status: StageStatus = StageStatus.PENDING
    output: Any = None
    error: Optional[BaseException] = None
    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    @property
    def duration(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at


@dataclass(frozen=True)
class BranchDecision:
    branch_id: str
    taken: bool
    workflow: str  # name of the sub-workflow that was selected


@dataclass
class WorkflowRun:
    """Trace of one workflow execution."""

    workflow: str
    status: RunStatus = RunStatus.NOT_STARTED
    records: dict[str, StageRecord] = field(default_factory=dict)
    decisions: dict[str, BranchDecision] = field(default_factory=dict)
    failed_stage: Optional[str] = None

    def output(self, stage_id: str) -> Any:
        record = self.records.get(stage_id)
        if record is None or record.status is not StageStatus.COMPLETED:
            return None
        return record.output

    def trace(self) -> list[StageRecord]:
        return list(self.records.values())

    def stages_with_status(self, status: StageStatus) -> list[str]:
        return [r.stage_id for r in self.records.values() if r.status is status]


class RunContext:
    """Everything a stage may read: shared state, options, collaborators.

    ``last_result`` is the output of the stage that ran immediately before
    the current one; ``step_result`` looks up any completed stage by id;
    ``state`` holds the named artifacts.
    """

    def __init__(
        self,
        state: WorkflowState | None = None,
        options=None,
        host=None,
        tracker=None,
        generator=None,
    ):
        self.state = state if state is not None else WorkflowState()
        self.options = options
        self.host = host
        self.tracker = tracker
        self.generator = generator
        self.last_result: Any = None
        self.run: WorkflowRun | None = None

    def step_result(self, stage_id: str) -> Any:
        if self.run is None:
            return None
        return self.run.output(stage_id)

    def lookup(self, key, stage_id: str | None = None) -> Any:
        """Return ``key`` from state, falling back to a stage's direct output."""
        value = self.state.get(key)
        if value is None and stage_id is not None:
            value = self.step_result(stage_id)
        return value


@dataclass
class Stage:
    id: str
    execute: Callable[[RunContext], Any]
    output_model: Optional[type[pydantic.BaseModel]] = None

    def run(self, ctx: RunContext) -> Any:
        return self._validate(self.execute(ctx))

    def _validate(self, result: Any) -> Any:
        model = self.output_model
        if model is None or isinstance(result, model):
            return result
        if isinstance(result, dict):
            try:
                return model.model_validate(result)
            except pydantic.ValidationError as e:
                raise ValidationError(f"Output of stage {self.id!r} does not match {model.__name__}: {e}") from e
        raise ValidationError(
            f"Stage {self.id!r} returned {type(result).__name__}, expected {model.__name__}."
        )


def stage(stage_id: str, output: type[pydantic.BaseModel] | None = None):
    """Decorator turning ``fn(ctx) -> value`` into a Stage."""

    def wrap(fn: Callable[[RunContext], Any]) -> Stage:
        return Stage(id=stage_id, execute=fn, output_model=output)

    return wrap


def noop_stage(stage_id: str) -> Stage:
    """A stage that does nothing and returns an empty result.

    Stands in for the disabled arm of a branch so the pipeline shape is the
    same whichever arm runs.
    """
    return Stage(id=stage_id, execute=lambda ctx: {})


@dataclass
class Branch:
    id: str
    predicate: Callable[[RunContext], bool]
    when_true: Workflow
    when_false: Workflow
    static: bool = False


Step = Union[Stage, Branch]


class Workflow:
    def __init__(self, name: str):
        self.name = name
        self._steps: list[Step] = []
        self._committed = False

    # ------------------------------------------------------------------ #
    # Declaration                                                          #
    # ------------------------------------------------------------------ #

    def step(self, item: Stage) -> Workflow:
        self._check_open()
        self._steps.append(item)
        return self

    def branch(
        self,
        branch_id: str,
        predicate: Callable[[RunContext], bool],
        when_true: Workflow,
        when_false: Workflow,
        static: bool = False,
    ) -> Workflow:
        self._check_open()
        for arm in (when_true, when_false):
            if not arm._committed:
                raise RuntimeError(f"Sub-workflow {arm.name!r} must be committed before use in a branch.")
        self._steps.append(Branch(branch_id, predicate, when_true, when_false, static))
        return self

    def commit(self) -> Workflow:
        ids = [*self.stage_ids(), *(b.id for b in self.branches())]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Duplicate step ids in workflow {self.name!r}: {', '.join(duplicates)}")
        self._committed = True
        return self

    def _check_open(self) -> None:
        if self._committed:
            raise RuntimeError(f"Workflow {self.name!r} is committed and cannot be changed.")

    @property
    def steps(self) -> tuple[Step, ...]:
        return tuple(self._steps)

    def stage_ids(self) -> list[str]:
        ids: list[str] = []
        for item in self._steps:
            if isinstance(item, Branch):
                ids.extend(item.when_true.stage_ids())
                ids.extend(item.when_false.stage_ids())
            else:
                ids.append(item.id)
        return ids

    def branches(self) -> Iterator[Branch]:
        for item in self._steps:
            if isinstance(item, Branch):
                yield item
                yield from item.when_true.branches()
                yield from item.when_false.branches()

    # ------------------------------------------------------------------ #
    # Execution                                                            #
    # ------------------------------------------------------------------ #

    def run(self, ctx: RunContext) -> WorkflowRun:
        if not self._committed:
            raise RuntimeError(f"Workflow {self.name!r} must be committed before it can run.")

        run = WorkflowRun(workflow=self.name)
        run.records = {stage_id: StageRecord(stage_id) for stage_id in self.stage_ids()}
        ctx.run = run
        run.status = RunStatus.RUNNING
        logger.debug("Workflow %s started.", self.name)

        try:
            for branch in self.branches():
                if branch.static:
                    self._decide(branch, ctx, run)
            self._execute(self._steps, ctx, run)
        except StageFailedError:
            run.status = RunStatus.FAILED
            raise

        run.status = RunStatus.COMPLETED
        logger.debug("Workflow %s completed.", self.name)
        return run

    def _decide(self, branch: Branch, ctx: RunContext, run: WorkflowRun) -> BranchDecision:
        decision = run.decisions.get(branch.id)
        if decision is not None:
            return decision
        try:
            taken = bool(branch.predicate(ctx))
        except Exception as e:
            run.failed_stage = branch.id
            raise StageFailedError(branch.id, e, run) from e
        arm = branch.when_true if taken else branch.when_false
        decision = BranchDecision(branch_id=branch.id, taken=taken, workflow=arm.name)
        run.decisions[branch.id] = decision
        logger.info("Branch %s -> %s", branch.id, arm.name)
        return decision

    def _execute(self, steps: tuple[Step, ...] | list[Step], ctx: RunContext, run: WorkflowRun) -> None:
        for item in steps:
            if isinstance(item, Branch):
                decision = self._decide(item, ctx, run)
                chosen, other = (
                    (item.when_true, item.when_false) if decision.taken else (item.when_false, item.when_true)
                )
                for stage_id in other.stage_ids():
                    run.records[stage_id].status = StageStatus.SKIPPED
                self._execute(chosen.steps, ctx, run)
            else:
                self._run_stage(item, ctx, run)

    def _run_stage(self, item: Stage, ctx: RunContext, run: WorkflowRun) -> None:
        record = run.records[item.id]
        record.status = StageStatus.RUNNING
        record.started_at = time.monotonic()
        logger.info("Stage %s running.", item.id)
        try:
            output = item.run(ctx)
        except Exception as e:
            record.finished_at = time.monotonic()
            record.status = StageStatus.FAILED
            record.error = e
            run.failed_stage = item.id
            logger.error("Stage %s failed: %s", item.id, e)
            raise StageFailedError(item.id, e, run) from e
        record.finished_at = time.monotonic()
        record.status = StageStatus.COMPLETED
        record.output = output
        ctx.last_result = output
        logger.info("Stage %s completed in %.2fs.", item.id, record.duration)
