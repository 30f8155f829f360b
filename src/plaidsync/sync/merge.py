"""Three-way merge of /transactions/sync deltas into a ledger."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from plaidsync.models.transaction import RemovedTransaction, Transaction


def apply_delta(
    records: Mapping[str, Transaction],
    *,
    added: Iterable[Transaction] = (),
    modified: Iterable[Transaction] = (),
    removed: Iterable[RemovedTransaction] = (),
) -> dict[str, Transaction]:
    """
    Apply one sync delta to a ledger and return the new ledger.

    Order is removals, then modifications, then additions. A removal and an
    addition of the same id in one batch therefore leaves the added record,
    and a modification that arrives before its addition is inserted rather
    than dropped. Additions are upserts, so replaying a delta is a no-op.

    Args:
        records: Current ledger, transaction_id -> record (not mutated)
        added: Records Plaid reports as new
        modified: Records Plaid reports as changed
        removed: Entries carrying the transaction_id of deleted records

    Returns:
        New ledger mapping in insertion order
    """
    merged = dict(records)

    for item in removed:
        transaction_id = item.get("transaction_id")
        if transaction_id:
            merged.pop(transaction_id, None)

    for txn in modified:
        merged[txn["transaction_id"]] = txn

    for txn in added:
        merged[txn["transaction_id"]] = txn

    return merged
