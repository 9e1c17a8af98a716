# Overview: Allocation of human-readable transaction numbers.

from __future__ import annotations

from datetime import datetime

from ..models import Store, TransactionSequence
from posengine.time_utils import business_date


def format_transaction_number(store_code: str, day, number: int) -> str:
    return f"TXN-{store_code}-{day:%Y%m%d}-{number:04d}"


def next_transaction_number(uow, store: Store, *, at: datetime | None = None) -> str:
    """
    Allocate the next TXN-{code}-{YYYYMMDD}-{NNNN} number for a store.

    The (store, day) counter row is locked for the rest of the unit of work.
    Two units racing to create the first row of the day collide on the unique
    constraint; the loser's IntegrityError is retried by the caller.
    """
    day = business_date(at)

    seq = uow.locked(
        uow.query(TransactionSequence).filter_by(store_id=store.id, business_date=day)
    ).first()

    if seq is None:
        seq = TransactionSequence(store_id=store.id, business_date=day, next_number=2)
        uow.add(seq)
        uow.flush()
        number = 1
    else:
        number = seq.next_number
        seq.next_number = number + 1
        uow.flush()

    return format_transaction_number(store.code, day, number)
