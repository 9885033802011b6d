#!/usr/bin/env python3
"""
Deployment attempt record and its state machine.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .errors import InvalidTransition


class DeploymentState(str, Enum):
    INIT = 'init'
    BACKED_UP = 'backed_up'
    STAGED = 'staged'
    ACTIVATED = 'activated'
    VERIFYING = 'verifying'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'
    ROLLED_BACK = 'rolled_back'
    ROLLBACK_FAILED = 'rollback_failed'


TRANSITIONS = {
    DeploymentState.INIT: {DeploymentState.BACKED_UP, DeploymentState.FAILED},
    DeploymentState.BACKED_UP: {DeploymentState.STAGED, DeploymentState.FAILED},
    DeploymentState.STAGED: {DeploymentState.ACTIVATED, DeploymentState.FAILED},
    DeploymentState.ACTIVATED: {
        DeploymentState.VERIFYING, DeploymentState.SUCCEEDED, DeploymentState.FAILED
    },
    DeploymentState.VERIFYING: {DeploymentState.SUCCEEDED, DeploymentState.FAILED},
    DeploymentState.FAILED: {DeploymentState.ROLLED_BACK, DeploymentState.ROLLBACK_FAILED},
    DeploymentState.SUCCEEDED: set(),
    DeploymentState.ROLLED_BACK: set(),
    DeploymentState.ROLLBACK_FAILED: set(),
}

TERMINAL_STATES = {
    DeploymentState.SUCCEEDED, DeploymentState.FAILED,
    DeploymentState.ROLLED_BACK, DeploymentState.ROLLBACK_FAILED,
}

# Failing from one of these means activation was reached and the live service may have changed
MUTATED_STATES = {DeploymentState.STAGED, DeploymentState.ACTIVATED, DeploymentState.VERIFYING}


@dataclass
class DeploymentAttempt:
    """One end-to-end run of the deployment procedure for a target version."""
    service: str
    version: str
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: datetime = None
    state: DeploymentState = DeploymentState.INIT
    history: list = field(default_factory=list)
    backup: object = None
    version_ref: object = None
    previous_version: str = None
    failure_reason: str = None
    rollback_error: str = None
    failed_step: str = None
    failed_from: DeploymentState = None
    rollback_performed: bool = False

    def __post_init__(self):
        if not self.history:
            self.history.append((self.state, self.started_at))

    def transition(self, new_state):
        if new_state not in TRANSITIONS[self.state]:
            raise InvalidTransition(f"{self.state.value} -> {new_state.value}")
        if new_state == DeploymentState.FAILED:
            self.failed_from = self.state
        self.state = new_state
        self.history.append((new_state, datetime.now()))

    def fail(self, error, step):
        self.failure_reason = str(error)
        self.failed_step = step
        self.transition(DeploymentState.FAILED)

    def finish(self):
        if self.finished_at is None:
            self.finished_at = datetime.now()

    @property
    def live_touched(self):
        return self.failed_from in MUTATED_STATES
