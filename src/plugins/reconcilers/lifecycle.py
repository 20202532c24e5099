"""
Machine Lifecycle - Teardown state machine for running machines.

A machine cannot be deleted while it is running, and both stop and destroy
are asynchronous requests on the backend. Teardown therefore observes the
machine, takes the action its state calls for, and observes again, idling
while the machine is in a transient state.

The transition table (next_step) is a pure function; MachineDestroyer is the
driver that performs requests, executes actions and counts retries.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from pydantic import ValidationError

from clients.errors import MachinesTransportError
from clients.machines import Machine, MachinesClient, MachinesResponse
from config import LifecycleConfig
from diagnostics import ErrorKind
from models import MachineState

logger = logging.getLogger(__name__)


class TeardownAction(Enum):
    """Action the driver takes after observing a state."""

    NONE = "none"
    STOP = "stop"
    DESTROY = "destroy"
    DONE = "done"


@dataclass(frozen=True)
class Step:
    """Outcome of one transition: an action, and whether to idle afterwards."""

    action: TeardownAction
    wait: bool = False


TRANSITIONS: Dict[MachineState, Step] = {
    MachineState.STARTED: Step(TeardownAction.STOP),
    MachineState.STOPPING: Step(TeardownAction.NONE, wait=True),
    MachineState.STOPPED: Step(TeardownAction.DESTROY),
    MachineState.DESTROYING: Step(TeardownAction.NONE, wait=True),
    MachineState.DESTROYED: Step(TeardownAction.DONE),
}

NO_OP = Step(TeardownAction.NONE)


def next_step(state: MachineState) -> Step:
    """Return the teardown step for an observed machine state."""
    return TRANSITIONS.get(state, NO_OP)


@dataclass
class TeardownOutcome:
    """Result of a teardown run."""

    destroyed: bool = False
    iterations: int = 0
    error_kind: Optional[ErrorKind] = None
    error_summary: str = ""
    error_detail: str = ""
    last_action_error: Optional[str] = None
    observed: List[MachineState] = field(default_factory=list)


class MachineDestroyer:
    """
    Drives a machine to the destroyed state with bounded retries.

    Stop and destroy requests are fire-and-forget: their failures are logged
    and remembered, and the next observation decides what happens next. If
    the loop runs out of iterations, the last remembered action failure is
    reported alongside the timeout.
    """

    def __init__(
        self,
        client: MachinesClient,
        config: Optional[LifecycleConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.config = config or LifecycleConfig()
        self._sleep = sleep

    async def run(self, app: str, machine_id: str) -> TeardownOutcome:
        """
        Tear down a machine.

        Args:
            app: Name of the owning application.
            machine_id: Machine identifier.

        Returns:
            TeardownOutcome; ``destroyed`` is True only once the machine was
            observed in the destroyed state.
        """
        outcome = TeardownOutcome()

        for attempt in range(1, self.config.max_retries + 1):
            outcome.iterations = attempt

            try:
                response = await self.client.get_machine(app, machine_id)
            except MachinesTransportError as e:
                outcome.error_kind = ErrorKind.GET_INSTANCE_FAILED
                outcome.error_summary = "Failed to get machine"
                outcome.error_detail = str(e)
                return outcome

            if response.status != 200:
                logger.warning(
                    f"Machine {machine_id} lookup returned {response.status}, "
                    f"retrying in {self.config.poll_interval}s "
                    f"(attempt {attempt}/{self.config.max_retries})"
                )
                await self._sleep(self.config.poll_interval)
                continue

            try:
                machine = Machine.model_validate(response.body)
            except ValidationError as e:
                outcome.error_kind = ErrorKind.DECODE_FAILED
                outcome.error_summary = "Failed to read machine response"
                outcome.error_detail = str(e)
                return outcome

            state = MachineState.parse(machine.state)
            outcome.observed.append(state)
            step = next_step(state)
            logger.debug(
                f"Machine {machine_id} is {machine.state}, action {step.action.value} "
                f"(attempt {attempt}/{self.config.max_retries})"
            )

            if step.action is TeardownAction.DONE:
                outcome.destroyed = True
                logger.info(f"Machine {machine_id} destroyed")
                return outcome

            if step.action is TeardownAction.STOP:
                await self._fire(
                    outcome, "stop", self.client.stop_machine, app, machine_id
                )
            elif step.action is TeardownAction.DESTROY:
                await self._fire(
                    outcome, "destroy", self.client.delete_machine, app, machine_id
                )

            if step.wait:
                await self._sleep(self.config.poll_interval)

        outcome.error_kind = ErrorKind.DELETE_TIMEOUT
        outcome.error_summary = "Machine delete failed"
        outcome.error_detail = "max retries exceeded"
        if outcome.last_action_error:
            outcome.error_detail += f"; last action error: {outcome.last_action_error}"
        return outcome

    async def _fire(
        self,
        outcome: TeardownOutcome,
        verb: str,
        request: Callable[[str, str], Awaitable[MachinesResponse]],
        app: str,
        machine_id: str,
    ) -> None:
        logger.info(f"Requesting {verb} of machine {machine_id}")
        try:
            response = await request(app, machine_id)
        except MachinesTransportError as e:
            outcome.last_action_error = str(e)
            logger.warning(f"Machine {verb} request failed: {e}")
            return

        if not response.ok:
            outcome.last_action_error = f"{verb}: {response.describe()}"
            logger.warning(f"Machine {verb} request rejected: {response.describe()}")
