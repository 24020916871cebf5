"""Request status state machine.

    pending      --inspector:mark-in-progress--> in_progress
    pending|in_progress --inspector:approve-->   approved
    pending|in_progress --inspector:reject-->    rejected
    approved     --certifier:certify-->          certified
    pending|in_progress|approved|rejected --creator:revert--> reverted

``certified`` and ``reverted`` are terminal. Authorization is checked
before workflow legality, so an actor without the right role learns nothing
about the request's status.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from certchain_api.lifecycle.errors import ForbiddenError, IllegalTransitionError


class RequestStatus(str, Enum):
    """Status of a certification request."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    APPROVED = "approved"
    REJECTED = "rejected"
    CERTIFIED = "certified"
    REVERTED = "reverted"


class Role(str, Enum):
    """Actor roles."""

    PRODUCER = "producer"
    INSPECTOR = "inspector"
    CERTIFIER = "certifier"


class Action(str, Enum):
    """Actions an actor can take against an existing request."""

    MARK_IN_PROGRESS = "mark-in-progress"
    APPROVE = "approve"
    REJECT = "reject"
    CERTIFY = "certify"
    REVERT = "revert"


TERMINAL_STATUSES = frozenset({RequestStatus.CERTIFIED, RequestStatus.REVERTED})


@dataclass(frozen=True)
class TransitionRule:
    """One row of the transition table."""

    action: Action
    role: Role
    sources: frozenset
    target: RequestStatus
    journal_role: str
    journal_action: str
    creator_only: bool = False
    assigns: Optional[str] = None  # request column set to the actor id


_RULES: dict[Action, TransitionRule] = {
    Action.MARK_IN_PROGRESS: TransitionRule(
        action=Action.MARK_IN_PROGRESS,
        role=Role.INSPECTOR,
        sources=frozenset({RequestStatus.PENDING}),
        target=RequestStatus.IN_PROGRESS,
        journal_role="inspector",
        journal_action="in_progress",
        assigns="inspector_id",
    ),
    Action.APPROVE: TransitionRule(
        action=Action.APPROVE,
        role=Role.INSPECTOR,
        sources=frozenset({RequestStatus.PENDING, RequestStatus.IN_PROGRESS}),
        target=RequestStatus.APPROVED,
        journal_role="inspector",
        journal_action="approved",
        assigns="inspector_id",
    ),
    Action.REJECT: TransitionRule(
        action=Action.REJECT,
        role=Role.INSPECTOR,
        sources=frozenset({RequestStatus.PENDING, RequestStatus.IN_PROGRESS}),
        target=RequestStatus.REJECTED,
        journal_role="inspector",
        journal_action="rejected",
        assigns="inspector_id",
    ),
    Action.CERTIFY: TransitionRule(
        action=Action.CERTIFY,
        role=Role.CERTIFIER,
        sources=frozenset({RequestStatus.APPROVED}),
        target=RequestStatus.CERTIFIED,
        journal_role="certifier",
        journal_action="certified",
        assigns="certifier_id",
    ),
    Action.REVERT: TransitionRule(
        action=Action.REVERT,
        role=Role.PRODUCER,
        sources=frozenset(
            {
                RequestStatus.PENDING,
                RequestStatus.IN_PROGRESS,
                RequestStatus.APPROVED,
                RequestStatus.REJECTED,
            }
        ),
        target=RequestStatus.REVERTED,
        journal_role="creator",
        journal_action="reverted",
        creator_only=True,
    ),
}


class StatusStateMachine:
    """Validates transitions. Pure: persistence is the coordinator's job."""

    @staticmethod
    def rule_for(action: Action) -> TransitionRule:
        return _RULES[Action(action)]

    @staticmethod
    def authorize(action: Action, actor_role: Role, request_id: Optional[str] = None) -> TransitionRule:
        """Role check alone; needs no knowledge of the request.

        Raises:
            ForbiddenError: the action belongs to another role
        """
        rule = StatusStateMachine.rule_for(action)
        if Role(actor_role) != rule.role:
            raise ForbiddenError(
                f"Actor is not permitted to {rule.action.value} this request",
                request_id=request_id,
                action=rule.action.value,
            )
        return rule

    @staticmethod
    def validate(
        current: RequestStatus,
        action: Action,
        actor_role: Role,
        actor_is_creator: bool = False,
        request_id: Optional[str] = None,
    ) -> TransitionRule:
        """Return the matching rule or raise.

        Raises:
            ForbiddenError: role (or creator ownership) does not permit the action
            IllegalTransitionError: action not valid from ``current``
        """
        rule = StatusStateMachine.authorize(action, actor_role, request_id=request_id)
        action_value = rule.action.value

        if rule.creator_only and not actor_is_creator:
            raise ForbiddenError(
                f"Actor is not permitted to {action_value} this request",
                request_id=request_id,
                action=action_value,
                current_status=RequestStatus(current).value,
            )

        if RequestStatus(current) not in rule.sources:
            raise IllegalTransitionError(
                f"Cannot {action_value} a request in status {RequestStatus(current).value}",
                request_id=request_id,
                action=action_value,
                current_status=RequestStatus(current).value,
            )
        return rule

    @staticmethod
    def is_terminal(status: RequestStatus) -> bool:
        return RequestStatus(status) in TERMINAL_STATUSES

    @staticmethod
    def allowed_actions(status: RequestStatus, actor_role: Role) -> list[Action]:
        """Actions ``actor_role`` may take from ``status`` (creator ownership not checked)."""
        return [
            rule.action
            for rule in _RULES.values()
            if rule.role == Role(actor_role) and RequestStatus(status) in rule.sources
        ]
