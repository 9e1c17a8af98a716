# Overview: Post-commit domain events for completed, voided and refunded transactions.

from __future__ import annotations

from blinker import Namespace
from flask import current_app

_signals = Namespace()

# sender: the Flask app; kwargs: transaction_id, transaction_number, store_id,
# action, change_summary
transaction_event = _signals.signal("transaction-event")

ACTION_COMPLETED = "completed"
ACTION_VOIDED = "voided"
ACTION_REFUND = "refund"


def emit_transaction_event(transaction, action: str, summary: str | None = None) -> None:
    """
    Fire-and-forget notification, sent only after the unit of work committed.

    Receivers (mailers, webhooks) are external; a failing receiver is logged
    and never undoes or fails the operation that already committed.
    """
    app = current_app._get_current_object()
    payload = {
        "transaction_id": transaction.id,
        "transaction_number": transaction.transaction_number,
        "store_id": transaction.store_id,
        "action": action,
        "change_summary": summary,
    }
    for receiver in transaction_event.receivers_for(app):
        try:
            receiver(app, **payload)
        except Exception:
            app.logger.exception(
                "transaction-event receiver failed for %s (%s)",
                transaction.transaction_number, action,
            )
