from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

logger = logging.getLogger("storesync.steps")


@dataclass
class AdkStep:
    """Step descriptor for the ADK-style pipeline runner."""
    name: str
    fn: Callable[[Any], None]
    skip_if: Optional[Callable[[Any], bool]] = None
    always_run: bool = False


class AdkAgent:
    """Lightweight ADK-style step runner for deterministic pipelines."""

    def __init__(self, steps: List[AdkStep], stop_when: Optional[Callable[[Any], bool]] = None) -> None:
        """Purpose: Initialize the agent with an ordered list of steps.
        Inputs/Outputs: Inputs are the steps and an optional terminal predicate; no return.
        Side Effects / State: Stores the step list for later execution.
        Dependencies: None beyond AdkStep definitions.
        Failure Modes: None; assumes valid callables in steps.
        If Removed: Plan steps are never executed and every run stays in processing.
        Testing Notes: Provide a minimal step list and ensure order is preserved.
        """
        # Store the pipeline steps and the terminal-outcome predicate.
        self._steps = steps
        self._stop_when = stop_when

    def run(self, context: Any) -> List[str]:
        """Purpose: Execute steps in order until the context reaches a terminal outcome.
        Inputs/Outputs: Input is a mutable context object; output is the names of steps
            that actually ran.
        Side Effects / State: Invokes step functions that may mutate context.
        Dependencies: Depends on AdkStep.fn, skip_if, always_run, and stop_when.
        Failure Modes: Exceptions in step functions propagate to the caller.
        If Removed: The plan pipeline cannot run.
        Testing Notes: After stop_when turns true only always_run steps still execute.
        """
        # Iterate steps and honor terminal/skip_if/always_run guards.
        executed: List[str] = []
        for step in self._steps:
            if not step.always_run:
                if self._stop_when and self._stop_when(context):
                    continue
                if step.skip_if and step.skip_if(context):
                    continue
            logger.debug("step=%s", step.name)
            step.fn(context)
            executed.append(step.name)
        return executed
