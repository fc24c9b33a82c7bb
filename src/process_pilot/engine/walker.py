"""Step-list interpreter.

Templates are trees: a condition step owns one step list per branch label. The
:class:`StepWalker` interprets that tree with an explicit stack of frames
instead of recursion. Entering a branch pushes a frame; when the branch is
exhausted its frame is popped and the walk continues with the step after the
condition in the enclosing list.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from process_pilot.exceptions import ParallelGroupFailure, StepExecutionError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from process_pilot.core.definition import StepSpec
    from process_pilot.core.models import WorkflowRun
    from process_pilot.core.protocols import Clock
    from process_pilot.core.signals import CancellationToken
    from process_pilot.engine.executor import StepExecutor

__all__ = ["StepWalker"]

logger = structlog.get_logger(__name__)


@dataclass
class _Frame:
    steps: Sequence[StepSpec]
    index: int = 0


def _parallel_group(steps: Sequence[StepSpec], start: int) -> Sequence[StepSpec]:
    end = start
    while end < len(steps) and steps[end].parallel:
        end += 1
    return steps[start:end]


class StepWalker:
    """Walk a step tree, appending results to the run's step log.

    Rules:

    * A contiguous run of ``parallel`` steps forms one fan-out group. All
      members run to completion; their results are appended in declared order;
      the walk aborts with :class:`ParallelGroupFailure` afterwards if any
      required member failed.
    * A failed required step outside a group aborts the walk immediately with
      :class:`StepExecutionError`. Failed optional steps are logged and skipped.
    * A completed condition step pushes the step list of the selected branch.
    * Steps named in ``skip`` are not executed. A skipped condition step
      re-enters the branch recorded for it in ``branches``.
    * The cancellation token is checked before every step and every group.
    """

    def __init__(self, executor: StepExecutor, clock: Clock) -> None:
        self.executor = executor
        self.clock = clock

    async def walk(
        self,
        steps: Sequence[StepSpec],
        run: WorkflowRun,
        token: CancellationToken | None = None,
        *,
        skip: frozenset[str] | set[str] = frozenset(),
        branches: Mapping[str, str] | None = None,
    ) -> None:
        """Execute ``steps`` against ``run``.

        Args:
            steps: The top-level step list.
            run: The run whose context and step log are used.
            token: Cancellation signal checked at step boundaries.
            skip: Names of steps that already completed.
            branches: Branch labels previously selected by skipped condition steps.

        Raises:
            StepExecutionError: A required step failed.
            ParallelGroupFailure: Required members of a parallel group failed.
            RunCancelledError: The token fired.
        """
        recorded = branches or {}
        stack = [_Frame(steps)]
        while stack:
            frame = stack[-1]
            if frame.index >= len(frame.steps):
                stack.pop()
                continue

            step = frame.steps[frame.index]
            if step.parallel:
                group = _parallel_group(frame.steps, frame.index)
                frame.index += len(group)
                await self._run_group([member for member in group if member.name not in skip], run, token)
                continue

            frame.index += 1
            if step.name in skip:
                label = recorded.get(step.name)
                if label is not None and step.branches_of().get(label):
                    stack.append(_Frame(step.branches_of()[label]))
                continue

            self._check(run, token)
            result = await self.executor.execute(step, run.context)
            run.append_step(result)

            if not result.succeeded:
                if step.required:
                    raise StepExecutionError(step.name, result.error)
                logger.info("optional_step_failed", run_id=str(run.id), step=step.name, error=result.error)
                continue

            if result.branch is not None:
                branch_steps = step.branches_of().get(result.branch)
                logger.debug("branch_selected", run_id=str(run.id), step=step.name, branch=result.branch)
                if branch_steps:
                    stack.append(_Frame(branch_steps))

    async def _run_group(
        self,
        group: Sequence[StepSpec],
        run: WorkflowRun,
        token: CancellationToken | None,
    ) -> None:
        if not group:
            return
        self._check(run, token)
        logger.info("parallel_group_started", run_id=str(run.id), steps=[step.name for step in group])
        results = await asyncio.gather(*(self.executor.execute(step, run.context) for step in group))
        for result in results:
            run.append_step(result)

        failures = [(result.name, result.error) for result in results if not result.succeeded and result.required]
        if failures:
            raise ParallelGroupFailure(failures)

    def _check(self, run: WorkflowRun, token: CancellationToken | None) -> None:
        if token is not None:
            token.check(run.id, self.clock.now())
