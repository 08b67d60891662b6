from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger("fixology.pipeline")

ContextT = TypeVar("ContextT")


@dataclass
class PipelineStep(Generic[ContextT]):
    """Named async step with an optional skip guard."""
    name: str
    fn: Callable[[ContextT], Awaitable[None]]
    skip_if: Optional[Callable[[ContextT], bool]] = None


class StepRunner(Generic[ContextT]):
    """Runs async pipeline steps in order against a shared mutable context."""

    def __init__(self, steps: List[PipelineStep[ContextT]]) -> None:
        self._steps = steps

    @property
    def step_names(self) -> List[str]:
        return [step.name for step in self._steps]

    async def run(self, context: ContextT) -> None:
        """Purpose: Execute steps sequentially, honoring skip guards.
        Inputs/Outputs: Input is the mutable context; no return value.
        Side Effects / State: Each step may mutate the context.
        Dependencies: Depends on PipelineStep.fn and PipelineStep.skip_if.
        Failure Modes: Exceptions from a step stop the run and propagate.
        If Removed: The chat pipeline cannot execute.
        Testing Notes: Verify order, skip_if, and that an exception halts later steps.
        """
        # Steps run one after another; each awaits before the next starts.
        for step in self._steps:
            if step.skip_if and step.skip_if(context):
                logger.debug("step=%s status=skipped", step.name)
                continue
            await step.fn(context)
            logger.debug("step=%s status=success", step.name)
