# Overview: Transaction state machine; the only place status transitions are decided.

"""
Transaction lifecycle

STATE MACHINE:
    DRAFT -> SUSPENDED | COMPLETED
    SUSPENDED -> DRAFT
    COMPLETED -> VOIDED

    DRAFT:      Being built at the register; items, payments and customer are editable
    SUSPENDED:  Parked draft; still editable, must be resumed before completion
    COMPLETED:  Stock has left the store; only refunds and voiding remain
    VOIDED:     Terminal; stock for every non-refunded line has been restored

RULES:
1. No state may be skipped (a DRAFT is abandoned, never voided)
2. VOIDED has no outgoing transitions
3. Every status in TransactionStatus has an entry in TRANSITIONS
"""

from __future__ import annotations

from ..exceptions import ValidationError
from ..models import TransactionStatus


TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    TransactionStatus.DRAFT: frozenset({TransactionStatus.SUSPENDED, TransactionStatus.COMPLETED}),
    TransactionStatus.SUSPENDED: frozenset({TransactionStatus.DRAFT}),
    TransactionStatus.COMPLETED: frozenset({TransactionStatus.VOIDED}),
    TransactionStatus.VOIDED: frozenset(),
}

MUTABLE_STATUSES = frozenset({TransactionStatus.DRAFT, TransactionStatus.SUSPENDED})

# Exhaustiveness: adding a status without deciding its transitions is a bug.
assert set(TRANSITIONS) == set(TransactionStatus), "TRANSITIONS must cover every TransactionStatus"


def can_transition(from_status: TransactionStatus, to_status: TransactionStatus) -> bool:
    return to_status in TRANSITIONS[TransactionStatus(from_status)]


def assert_transition(transaction, to_status: TransactionStatus) -> None:
    current = TransactionStatus(transaction.status)
    if not can_transition(current, to_status):
        raise ValidationError(
            f"Cannot move transaction {transaction.transaction_number} "
            f"from {current.value} to {to_status.value}",
            details={"from": current.value, "to": to_status.value},
        )


def is_mutable(transaction) -> bool:
    return TransactionStatus(transaction.status) in MUTABLE_STATUSES


def assert_mutable(transaction) -> None:
    if not is_mutable(transaction):
        raise ValidationError(
            f"Transaction {transaction.transaction_number} is {TransactionStatus(transaction.status).value} "
            "and cannot be edited",
            details={"status": TransactionStatus(transaction.status).value},
        )


def assert_status(transaction, *allowed: TransactionStatus, action: str) -> None:
    current = TransactionStatus(transaction.status)
    if current not in allowed:
        names = ", ".join(status.value for status in allowed)
        raise ValidationError(
            f"Only {names} transactions can be {action}",
            details={"status": current.value},
        )
