from __future__ import annotations

from datetime import date
import json
from typing import Any, Literal, Self, cast
import urllib.error
import urllib.request

from pydantic import BaseModel, ConfigDict, Field

from plaidsync.models.transaction import Account, RemovedTransaction, Transaction

PlaidEnv = Literal["sandbox", "development", "production"]

PLAID_ENV_MAP: dict[PlaidEnv, str] = {
    "sandbox": "https://sandbox.plaid.com",
    "development": "https://development.plaid.com",
    "production": "https://production.plaid.com",
}

MUTATION_DURING_PAGINATION = "TRANSACTIONS_SYNC_MUTATION_DURING_PAGINATION"


class PlaidClientError(Exception):
    """Base error for Plaid client failures."""

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.status = status


class PlaidBaseModel(BaseModel):
    """Shared base for Plaid response models with a short parse alias."""

    model_config = ConfigDict(extra="allow")

    @classmethod
    def parse(cls, data: Any) -> Self:
        return cls.model_validate(data)


class LinkTokenCreateResponse(PlaidBaseModel):
    link_token: str
    expiration: str | None = None


class ItemPublicTokenExchangeResponse(PlaidBaseModel):
    access_token: str
    item_id: str


class AccountModel(PlaidBaseModel):
    account_id: str
    name: str | None = None
    official_name: str | None = None
    mask: str | None = None
    subtype: str | None = None
    type: str | None = None
    balances: dict[str, Any] | None = None


class AccountsGetResponse(PlaidBaseModel):
    accounts: list[AccountModel] = Field(default_factory=list)

    def to_accounts(self) -> list[Account]:
        return [account.model_dump() for account in self.accounts]


class PlaidTransactionModel(PlaidBaseModel):
    transaction_id: str
    account_id: str | None = None
    amount: float | None = None
    iso_currency_code: str | None = None
    date: str | None = None
    name: str | None = None
    merchant_name: str | None = None
    pending: bool = False
    payment_channel: str | None = None
    category: list[str] | None = None
    category_id: str | None = None
    personal_finance_category: dict[str, Any] | None = None

    def to_typed(self) -> Transaction:
        return cast(Transaction, self.model_dump(mode="json"))


class TransactionsSyncPage(PlaidBaseModel):
    added: list[PlaidTransactionModel] = Field(default_factory=list)
    modified: list[PlaidTransactionModel] = Field(default_factory=list)
    removed: list[dict[str, Any]] = Field(default_factory=list)
    next_cursor: str = ""
    has_more: bool = False

    def added_records(self) -> list[Transaction]:
        return [txn.to_typed() for txn in self.added]

    def modified_records(self) -> list[Transaction]:
        return [txn.to_typed() for txn in self.modified]

    def removed_records(self) -> list[RemovedTransaction]:
        return [
            cast(RemovedTransaction, item)
            for item in self.removed
            if item.get("transaction_id")
        ]


class TransactionsGetResponse(PlaidBaseModel):
    transactions: list[PlaidTransactionModel] = Field(default_factory=list)
    accounts: list[AccountModel] = Field(default_factory=list)
    total_transactions: int = 0


class RecurringTransactionsResponse(PlaidBaseModel):
    inflow_streams: list[dict[str, Any]] = Field(default_factory=list)
    outflow_streams: list[dict[str, Any]] = Field(default_factory=list)
    updated_datetime: str | None = None


class AuthGetResponse(PlaidBaseModel):
    accounts: list[AccountModel] = Field(default_factory=list)
    numbers: dict[str, Any] = Field(default_factory=dict)


class BankTransferEventListResponse(PlaidBaseModel):
    bank_transfer_events: list[dict[str, Any]] = Field(default_factory=list)


class PlaidClient:
    def __init__(
        self,
        *,
        client_id: str,
        secret: str,
        env: PlaidEnv = "sandbox",
        client_name: str = "plaidsync",
        timeout_seconds: float = 30.0,
    ) -> None:
        self._client_id = client_id
        self._secret = secret
        self._env = env
        self._client_name = client_name
        self._timeout_seconds = timeout_seconds

    @property
    def env(self) -> PlaidEnv:
        return self._env

    @property
    def client_name(self) -> str:
        return self._client_name

    def _base_url(self) -> str:
        try:
            return PLAID_ENV_MAP[self._env]
        except KeyError as e:
            raise PlaidClientError(
                f"Unsupported Plaid environment: {self._env!r}"
            ) from e

    def _parse_json_response(self, body: str) -> dict[str, Any]:
        """Parse JSON response from Plaid API.

        Args:
            body: JSON response body as string

        Returns:
            Parsed JSON as dictionary

        Raises:
            PlaidClientError: If JSON parsing fails
        """
        try:
            return cast(dict[str, Any], json.loads(body))
        except json.JSONDecodeError as e:
            raise PlaidClientError(
                f"Failed to parse Plaid response as JSON: {e}: {body}"
            ) from e

    @staticmethod
    def _error_code(body: str) -> str | None:
        try:
            data = json.loads(body)
        except json.JSONDecodeError:
            return None
        if isinstance(data, dict):
            code = data.get("error_code")
            return code if isinstance(code, str) else None
        return None

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = self._base_url().rstrip("/") + path
        body_payload = {
            "client_id": self._client_id,
            "secret": self._secret,
            **payload,
        }
        data = json.dumps(body_payload).encode("utf-8")
        req = urllib.request.Request(  # noqa: S310
            url,
            data=data,
            headers={"Content-Type": "application/json"},
            method="POST",
        )

        try:
            with urllib.request.urlopen(  # noqa: S310 - external HTTPS
                req, timeout=self._timeout_seconds
            ) as resp:
                body = resp.read().decode("utf-8")
        except urllib.error.HTTPError as e:  # pragma: no cover - network-dependent
            err_body = e.read().decode("utf-8", "ignore")
            raise PlaidClientError(
                f"Plaid API error ({e.code}) on {path}: {err_body}",
                error_code=self._error_code(err_body),
                status=e.code,
            ) from e
        except urllib.error.URLError as e:  # pragma: no cover - network-dependent
            raise PlaidClientError(f"Network error calling Plaid API: {e}") from e

        return self._parse_json_response(body)

    # High-level APIs -----------------------------------------------------

    def create_link_token(
        self,
        *,
        user_id: str,
        products: list[str],
        redirect_uri: str | None = None,
        webhook: str | None = None,
        days_requested: int | None = None,
        account_filters: dict[str, Any] | None = None,
        country_codes: list[str] | None = None,
        language: str = "en",
    ) -> LinkTokenCreateResponse:
        """Create a Plaid Link token for the client-side link flow."""
        payload: dict[str, Any] = {
            "client_name": self._client_name,
            "language": language,
            "country_codes": country_codes or ["US"],
            "user": {"client_user_id": user_id},
            "products": products,
        }
        if webhook:
            payload["webhook"] = webhook
        if redirect_uri is not None:
            payload["redirect_uri"] = redirect_uri
        if days_requested is not None:
            payload["transactions"] = {"days_requested": days_requested}
        if account_filters:
            payload["account_filters"] = account_filters

        return LinkTokenCreateResponse.parse(
            self._post("/link/token/create", payload)
        )

    def exchange_public_token(
        self, public_token: str
    ) -> ItemPublicTokenExchangeResponse:
        """Exchange a Link public_token for a durable access_token."""
        return ItemPublicTokenExchangeResponse.parse(
            self._post("/item/public_token/exchange", {"public_token": public_token})
        )

    def get_accounts(self, access_token: str) -> list[Account]:
        """Return accounts for an item using Plaid's /accounts/get endpoint."""
        resp = AccountsGetResponse.parse(
            self._post("/accounts/get", {"access_token": access_token})
        )
        return resp.to_accounts()

    def sync_transactions(
        self,
        access_token: str,
        *,
        cursor: str = "",
        count: int = 500,
    ) -> TransactionsSyncPage:
        """Thin wrapper around Plaid's /transactions/sync endpoint."""
        payload: dict[str, Any] = {
            "access_token": access_token,
            "count": count,
        }
        # Plaid treats an omitted cursor as "from the beginning of history".
        if cursor:
            payload["cursor"] = cursor

        return TransactionsSyncPage.parse(self._post("/transactions/sync", payload))

    def refresh_transactions(self, access_token: str) -> None:
        """Ask Plaid to check the institution for new transactions now."""
        self._post("/transactions/refresh", {"access_token": access_token})

    def get_transactions(
        self,
        access_token: str,
        *,
        start_date: date,
        end_date: date,
        account_ids: list[str] | None = None,
        count: int = 100,
        offset: int = 0,
    ) -> TransactionsGetResponse:
        """Return a window of transactions using Plaid's /transactions/get."""
        options: dict[str, Any] = {
            "count": count,
            "offset": offset,
        }
        if account_ids:
            options["account_ids"] = account_ids

        payload: dict[str, Any] = {
            "access_token": access_token,
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "options": options,
        }
        return TransactionsGetResponse.parse(self._post("/transactions/get", payload))

    def get_recurring_transactions(
        self,
        access_token: str,
        *,
        account_ids: list[str] | None = None,
    ) -> RecurringTransactionsResponse:
        """Return Plaid's detected inflow and outflow streams."""
        payload: dict[str, Any] = {"access_token": access_token}
        if account_ids:
            payload["account_ids"] = account_ids
        return RecurringTransactionsResponse.parse(
            self._post("/transactions/recurring/get", payload)
        )

    def get_auth(self, access_token: str) -> dict[str, Any]:
        """Return account and routing numbers from /auth/get."""
        resp = AuthGetResponse.parse(
            self._post("/auth/get", {"access_token": access_token})
        )
        return resp.model_dump()

    def list_bank_transfer_events(
        self,
        *,
        account_id: str,
        start_date: str,
        end_date: str,
        count: int = 25,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Return bank transfer events for one account."""
        payload: dict[str, Any] = {
            "account_id": account_id,
            "start_date": start_date,
            "end_date": end_date,
            "count": count,
            "offset": offset,
        }
        resp = BankTransferEventListResponse.parse(
            self._post("/bank_transfer/event/list", payload)
        )
        return resp.bank_transfer_events
