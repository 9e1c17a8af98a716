# Overview: Append-only version history for transactions.

from __future__ import annotations

import copy

from sqlalchemy import func

from ..extensions import db
from ..models import Transaction, TransactionChangeType, TransactionVersion
"""
Transaction Version Invariants (authoritative)

- Exactly one version per mutating operation, written in the same unit of
  work as the mutation it records.
- version_number = max(existing) + 1, starting at 1. The caller holds the
  transaction row lock, so allocation never races; the unique constraint on
  (transaction_id, version_number) is the backstop.
- Snapshots are serialized copies, never references to live rows.
- Transaction.version_count always equals the latest version_number.
- Versions are never updated or deleted.
"""


def snapshot_transaction(transaction: Transaction) -> tuple[list, list, dict]:
    items = [copy.deepcopy(item.to_dict()) for item in transaction.items]
    payments = [copy.deepcopy(payment.to_dict()) for payment in transaction.payments]
    totals = transaction.totals_dict()
    return items, payments, totals


def record_version(
    uow,
    transaction: Transaction,
    change_type: TransactionChangeType,
    actor: int,
    summary: str | None = None,
    diff: dict | None = None,
) -> TransactionVersion:
    # Pending item/payment changes must be visible to the snapshot
    uow.flush()

    current_max = (
        uow.query(func.max(TransactionVersion.version_number))
        .filter(TransactionVersion.transaction_id == transaction.id)
        .scalar()
    )
    version_number = (current_max or 0) + 1

    items, payments, totals = snapshot_transaction(transaction)
    version = TransactionVersion(
        transaction_id=transaction.id,
        version_number=version_number,
        change_type=TransactionChangeType(change_type),
        changed_by=actor,
        change_summary=(summary or "")[:500] or None,
        snapshot_items=items,
        snapshot_payments=payments,
        snapshot_totals=totals,
        diff_data=copy.deepcopy(diff) if diff else None,
    )
    uow.add(version)
    transaction.version_count = version_number
    uow.flush()
    return version


def get_versions(transaction_id: int) -> list[TransactionVersion]:
    return (
        db.session.query(TransactionVersion)
        .filter_by(transaction_id=transaction_id)
        .order_by(TransactionVersion.version_number.asc())
        .all()
    )


def get_version(transaction_id: int, version_number: int) -> TransactionVersion | None:
    return (
        db.session.query(TransactionVersion)
        .filter_by(transaction_id=transaction_id, version_number=version_number)
        .first()
    )
