"""
Admission workflow graph.

The table is compiled into the code: changing the workflow is a code change
reviewed like any other, never a runtime setting.
"""

from apps.admissions.models import ApplicationStatus

S = ApplicationStatus

INITIAL_STATUS = S.APPLIED

TRANSITIONS: dict[str, frozenset[str]] = {
    S.APPLIED: frozenset({S.UNDER_REVIEW, S.REJECTED, S.WITHDRAWN}),
    S.UNDER_REVIEW: frozenset({S.DOCUMENT_VERIFICATION, S.REJECTED, S.WITHDRAWN}),
    S.DOCUMENT_VERIFICATION: frozenset(
        {S.ENTRANCE_EXAM, S.INTERVIEW, S.REJECTED, S.WITHDRAWN}
    ),
    S.ENTRANCE_EXAM: frozenset({S.INTERVIEW, S.APPROVED, S.REJECTED, S.WITHDRAWN}),
    S.INTERVIEW: frozenset({S.APPROVED, S.WAITLISTED, S.REJECTED, S.WITHDRAWN}),
    S.APPROVED: frozenset({S.ENROLLED, S.WITHDRAWN}),
    S.WAITLISTED: frozenset({S.APPROVED, S.REJECTED, S.WITHDRAWN}),
    S.REJECTED: frozenset(),
    S.ENROLLED: frozenset(),
    S.WITHDRAWN: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)


def allowed_targets(status) -> list[str]:
    """Next statuses reachable from ``status``, in declaration order."""
    targets = TRANSITIONS.get(status, frozenset())
    return [choice for choice in S.values if choice in targets]


def can_transition(current, target) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def is_terminal(status) -> bool:
    return status in TERMINAL_STATUSES
