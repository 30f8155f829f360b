from __future__ import annotations

import asyncio
from datetime import date, timedelta

from plaid_fakes import (
    FakePlaidClient,
    RecordingSleep,
    create_test_transaction,
    link_user,
    sync_page,
)

from plaidsync.context import AppContext
from plaidsync.infra.clients.plaid import PlaidClientError
from plaidsync.models.settings import RefreshSetting
from plaidsync.tools.transactions.transactions_tool import (
    GetRecurringTransactionsTool,
    GetTransactionsTool,
    SyncTransactionsTool,
)

NOT_LINKED = {"success": False, "error": "User not connected to Plaid"}


class TestSyncTransactionsTool:
    def test_returns_summary(
        self, context: AppContext, plaid_client: FakePlaidClient
    ) -> None:
        # setup
        link_user(context)
        plaid_client.sync_pages = [
            sync_page(
                added=[create_test_transaction("t1"), create_test_transaction("t2")],
                removed=["t0"],
                next_cursor="c1",
            )
        ]

        # act
        result = asyncio.run(SyncTransactionsTool(context).execute_async(user_id="u1"))

        # assert
        assert result["success"] is True
        summary = result["summary"]
        assert summary["added"] == 2
        assert summary["modified"] == 0
        assert summary["removed"] == 1
        assert summary["has_more"] is False
        assert summary["last_synced"]
        assert plaid_client.refresh_calls == []

    def test_force_refresh_asks_plaid_and_waits(
        self,
        context: AppContext,
        plaid_client: FakePlaidClient,
        sleep: RecordingSleep,
    ) -> None:
        # setup
        link_user(context)
        context.stores.refresh_settings.set("u1", RefreshSetting(frequency="daily"))

        # act
        result = asyncio.run(
            SyncTransactionsTool(context).execute_async(user_id="u1", force_refresh=True)
        )

        # assert
        assert result["success"] is True
        assert plaid_client.refresh_calls == ["access-sandbox-1"]
        assert sleep.calls == [2.0]
        setting = context.stores.refresh_settings.get("u1")
        assert setting is not None
        assert setting.last_refreshed is not None

    def test_refresh_failure_is_tolerated(
        self,
        context: AppContext,
        plaid_client: FakePlaidClient,
        sleep: RecordingSleep,
    ) -> None:
        link_user(context)
        plaid_client.refresh_error = PlaidClientError("Plaid API error (400)")

        result = asyncio.run(
            SyncTransactionsTool(context).execute_async(user_id="u1", force_refresh=True)
        )

        assert result["success"] is True
        assert sleep.calls == [2.0]
        assert plaid_client.sync_calls == [""]

    def test_unlinked_user(self, context: AppContext, sleep: RecordingSleep) -> None:
        result = asyncio.run(
            SyncTransactionsTool(context).execute_async(
                user_id="nobody", force_refresh=True
            )
        )

        assert result == NOT_LINKED
        assert sleep.calls == []

    def test_sync_failure_returns_generic_error(
        self, context: AppContext, plaid_client: FakePlaidClient
    ) -> None:
        link_user(context)
        plaid_client.sync_pages = [PlaidClientError("Plaid API error (500)")]

        result = asyncio.run(SyncTransactionsTool(context).execute_async(user_id="u1"))

        assert result == {"success": False, "error": "Failed to sync transactions"}


class TestGetTransactionsTool:
    def test_defaults_to_trailing_thirty_days(
        self, context: AppContext, plaid_client: FakePlaidClient
    ) -> None:
        # setup
        link_user(context)

        # act
        result = asyncio.run(GetTransactionsTool(context).execute_async(user_id="u1"))

        # expected
        end = date.today()
        start = end - timedelta(days=30)

        # assert
        assert result["success"] is True
        assert result["start_date"] == start.isoformat()
        assert result["end_date"] == end.isoformat()
        assert result["total"] == 1
        assert result["count"] == 100
        assert result["offset"] == 0
        assert [txn["transaction_id"] for txn in result["transactions"]] == [
            "txn_get_1"
        ]
        call = plaid_client.transactions_get_calls[0]
        assert call["start_date"] == start
        assert call["end_date"] == end
        assert call["account_ids"] is None

    def test_passes_window_and_account_filter(
        self, context: AppContext, plaid_client: FakePlaidClient
    ) -> None:
        # setup
        link_user(context)

        # act
        asyncio.run(
            GetTransactionsTool(context).execute_async(
                user_id="u1",
                start_date="2025-01-01",
                end_date="2025-01-31",
                account_id="acc_1",
                count=25,
                offset=50,
            )
        )

        # assert
        call = plaid_client.transactions_get_calls[0]
        assert call["start_date"] == date(2025, 1, 1)
        assert call["end_date"] == date(2025, 1, 31)
        assert call["account_ids"] == ["acc_1"]
        assert call["count"] == 25
        assert call["offset"] == 50

    def test_refreshes_account_cache(
        self, context: AppContext, plaid_client: FakePlaidClient
    ) -> None:
        link_user(context)

        asyncio.run(GetTransactionsTool(context).execute_async(user_id="u1"))

        cached = context.stores.accounts.get("u1")
        assert cached is not None
        assert cached[0]["account_id"] == "acc_1"

    def test_rejects_malformed_date(self, context: AppContext) -> None:
        link_user(context)

        result = asyncio.run(
            GetTransactionsTool(context).execute_async(
                user_id="u1", start_date="01/02/2025"
            )
        )

        assert result == {
            "success": False,
            "error": "start_date must be a YYYY-MM-DD date",
        }

    def test_rejects_inverted_window(self, context: AppContext) -> None:
        link_user(context)

        result = asyncio.run(
            GetTransactionsTool(context).execute_async(
                user_id="u1", start_date="2025-02-01", end_date="2025-01-01"
            )
        )

        assert result["success"] is False

    def test_rejects_count_out_of_range(self, context: AppContext) -> None:
        link_user(context)

        result = asyncio.run(
            GetTransactionsTool(context).execute_async(user_id="u1", count=501)
        )

        assert result == {"success": False, "error": "count must be between 1 and 500"}

    def test_unlinked_user(self, context: AppContext) -> None:
        result = asyncio.run(GetTransactionsTool(context).execute_async(user_id="x"))

        assert result == NOT_LINKED


class TestGetRecurringTransactionsTool:
    def test_passes_streams_through(
        self, context: AppContext, plaid_client: FakePlaidClient
    ) -> None:
        link_user(context)

        result = asyncio.run(
            GetRecurringTransactionsTool(context).execute_async(
                user_id="u1", account_ids=["acc_1"]
            )
        )

        assert result == {
            "success": True,
            "inflow_streams": [{"stream_id": "in_1", "description": "Payroll"}],
            "outflow_streams": [{"stream_id": "out_1", "description": "Gym"}],
            "updated_datetime": "2025-01-01T00:00:00Z",
        }
        assert plaid_client.recurring_calls == [{"account_ids": ["acc_1"]}]

    def test_upstream_failure(
        self, context: AppContext, plaid_client: FakePlaidClient
    ) -> None:
        link_user(context)
        plaid_client.error = PlaidClientError("Plaid API error (400)")

        result = asyncio.run(
            GetRecurringTransactionsTool(context).execute_async(user_id="u1")
        )

        assert result == {
            "success": False,
            "error": "Failed to fetch recurring transactions",
        }
