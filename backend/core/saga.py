# backend/core/saga.py
"""
Saga runner
Runs ordered async steps and undoes completed ones in reverse on failure
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .exceptions import CompensationFailed

logger = logging.getLogger(__name__)

Action = Callable[[], Awaitable[Any]]


@dataclass
class SagaStep:
    name: str
    action: Action
    compensation: Optional[Action] = None


class Saga:
    """
    Ordered list of forward steps, each with an optional compensating step

    Usage:
        saga = Saga("create-peer")
        saga.add_step("router-create", create, compensation=delete)
        saga.add_step("custody-save", save)
        await saga.run()
        peer_id = saga.results["router-create"]

    Actions are zero-argument coroutine functions; a later step may read
    earlier results from saga.results.
    """

    def __init__(self, name: str):
        self.name = name
        self.steps: List[SagaStep] = []
        self.results: Dict[str, Any] = {}

    def add_step(self, name: str, action: Action, compensation: Optional[Action] = None) -> "Saga":
        self.steps.append(SagaStep(name, action, compensation))
        return self

    async def run(self) -> Dict[str, Any]:
        """
        Execute every step in order

        Raises:
            The failing step's exception when all compensations succeed,
            CompensationFailed when at least one compensation fails.
        """
        completed: List[SagaStep] = []

        for step in self.steps:
            try:
                self.results[step.name] = await step.action()
            except Exception as primary:
                logger.error(f"Saga {self.name}: step '{step.name}' failed: {primary}")
                compensation_errors = await self._compensate(completed)
                if compensation_errors:
                    raise CompensationFailed(primary, compensation_errors) from primary
                raise
            completed.append(step)

        return self.results

    async def _compensate(self, completed: List[SagaStep]) -> List[BaseException]:
        errors: List[BaseException] = []
        for step in reversed(completed):
            if step.compensation is None:
                continue
            try:
                await step.compensation()
                logger.info(f"Saga {self.name}: compensated '{step.name}'")
            except Exception as e:
                logger.error(f"Saga {self.name}: compensation for '{step.name}' failed: {e}")
                errors.append(e)
        return errors
