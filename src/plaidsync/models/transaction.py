from __future__ import annotations

from typing import Any, TypedDict


class PersonalFinanceCategory(TypedDict):
    """Personal finance category information from Plaid."""
    confidence_level: str  # e.g., "HIGH", "VERY_HIGH"
    detailed: str  # e.g., "GENERAL_SERVICES_OTHER_GENERAL_SERVICES"
    primary: str  # e.g., "GENERAL_SERVICES"


class Transaction(TypedDict, total=False):
    """
    Transaction record as returned by Plaid's /transactions/sync and
    /transactions/get endpoints.

    Only transaction_id is required for ledger bookkeeping; the remaining
    fields mirror Plaid's transaction object and are stored verbatim.
    """
    transaction_id: str
    account_id: str
    amount: float
    iso_currency_code: str | None
    date: str
    name: str
    merchant_name: str | None
    pending: bool
    payment_channel: str | None
    category: list[str] | None  # e.g., ["Food and Drink", "Groceries"]
    category_id: str | None
    personal_finance_category: PersonalFinanceCategory | None


class RemovedTransaction(TypedDict, total=False):
    """Entry of the `removed` list in a /transactions/sync page."""
    transaction_id: str
    account_id: str


Account = dict[str, Any]
