"""MCP server exposing the Plaid tools, resources and prompt via FastMCP."""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal

from loguru import logger
from mcp.server.fastmcp import FastMCP
from pydantic import Field
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse
import uvicorn

from plaidsync.context import AppContext
from plaidsync.core.config import AppConfig
from plaidsync.models.settings import Frequency, utc_now_iso
from plaidsync.tools.accounts.accounts_tool import DEFAULT_EVENT_COUNT, MAX_EVENT_COUNT
from plaidsync.tools.catalog import build_registry
from plaidsync.tools.link.link_tool import (
    DEFAULT_HISTORY_DAYS,
    MAX_HISTORY_DAYS,
    MIN_HISTORY_DAYS,
)
from plaidsync.tools.registry import ToolRegistry
from plaidsync.tools.transactions.transactions_tool import (
    DEFAULT_PAGE_COUNT,
    MAX_PAGE_COUNT,
)
from plaidsync.ui.mcp.resources import (
    auth_data_view,
    connect_bank_account_prompt,
    refresh_settings_view,
    transactions_view,
    webhook_events_view,
)

Transport = Literal["stdio", "sse"]

WEBHOOK_ACK = "Webhook received"

UserId = Annotated[str, Field(description="Unique identifier for the user")]


def _dumps(payload: dict[str, Any]) -> str:
    return json.dumps(payload, default=str)


def create_server(
    context: AppContext, registry: ToolRegistry | None = None
) -> FastMCP:
    """
    Build a FastMCP server bound to one AppContext.

    Every tool delegates to the registry, so the MCP layer only declares
    argument types; behaviour and the response envelope live in the tools.
    Tools missing from the registry (auth-only mode) are not exposed.
    """
    registry = registry if registry is not None else build_registry(context)
    mcp = FastMCP(
        name="plaidsync", host=context.config.host, port=context.config.port
    )

    def expose(name: str, fn: Any) -> None:
        tool = registry.get(name)
        if tool is not None:
            mcp.add_tool(fn, name=name, description=tool.description)

    async def create_link_token(
        user_id: UserId,
        redirect_uri: Annotated[
            str | None, Field(description="OAuth redirect URI registered with Plaid")
        ] = None,
        include_bank_transfers: bool = False,
        include_auth: bool = True,
        include_transactions: bool = True,
        history_days: Annotated[
            int, Field(ge=MIN_HISTORY_DAYS, le=MAX_HISTORY_DAYS)
        ] = DEFAULT_HISTORY_DAYS,
    ) -> dict[str, Any]:
        return await registry.execute_async(
            "create-link-token",
            user_id=user_id,
            redirect_uri=redirect_uri,
            include_bank_transfers=include_bank_transfers,
            include_auth=include_auth,
            include_transactions=include_transactions,
            history_days=history_days,
        )

    async def exchange_public_token(
        user_id: UserId,
        public_token: Annotated[str, Field(description="Public token from Plaid Link")],
    ) -> dict[str, Any]:
        return await registry.execute_async(
            "exchange-public-token", user_id=user_id, public_token=public_token
        )

    async def get_accounts(user_id: UserId) -> dict[str, Any]:
        return await registry.execute_async("get-accounts", user_id=user_id)

    async def sync_transactions(
        user_id: UserId, force_refresh: bool = False
    ) -> dict[str, Any]:
        return await registry.execute_async(
            "sync-transactions", user_id=user_id, force_refresh=force_refresh
        )

    async def get_transactions(
        user_id: UserId,
        start_date: Annotated[
            str | None, Field(description="Start date in YYYY-MM-DD format")
        ] = None,
        end_date: Annotated[
            str | None, Field(description="End date in YYYY-MM-DD format")
        ] = None,
        account_id: Annotated[
            str | None, Field(description="Filter by specific account ID")
        ] = None,
        count: Annotated[int, Field(ge=1, le=MAX_PAGE_COUNT)] = DEFAULT_PAGE_COUNT,
        offset: Annotated[int, Field(ge=0)] = 0,
    ) -> dict[str, Any]:
        return await registry.execute_async(
            "get-transactions",
            user_id=user_id,
            start_date=start_date,
            end_date=end_date,
            account_id=account_id,
            count=count,
            offset=offset,
        )

    async def get_recurring_transactions(
        user_id: UserId, account_ids: list[str] | None = None
    ) -> dict[str, Any]:
        return await registry.execute_async(
            "get-recurring-transactions", user_id=user_id, account_ids=account_ids
        )

    async def set_refresh_schedule(
        user_id: UserId,
        frequency: Frequency,
        custom_schedule: Annotated[
            str | None,
            Field(description="Cron expression, required when frequency is 'custom'"),
        ] = None,
    ) -> dict[str, Any]:
        return await registry.execute_async(
            "set-refresh-schedule",
            user_id=user_id,
            frequency=frequency,
            custom_schedule=custom_schedule,
        )

    async def process_webhook(
        webhook_body: Annotated[
            dict[str, Any], Field(description="Webhook JSON body as sent by Plaid")
        ],
    ) -> dict[str, Any]:
        return await registry.execute_async(
            "process-webhook", webhook_body=webhook_body
        )

    async def get_auth_data(
        user_id: UserId, force_refresh: bool = False
    ) -> dict[str, Any]:
        return await registry.execute_async(
            "get-auth-data", user_id=user_id, force_refresh=force_refresh
        )

    async def get_bank_transfer_events(
        user_id: UserId,
        start_date: Annotated[str, Field(description="Start of the ISO 8601 window")],
        end_date: Annotated[str, Field(description="End of the ISO 8601 window")],
        count: Annotated[int, Field(ge=1, le=MAX_EVENT_COUNT)] = DEFAULT_EVENT_COUNT,
        offset: Annotated[int, Field(ge=0)] = 0,
    ) -> dict[str, Any]:
        return await registry.execute_async(
            "get-bank-transfer-events",
            user_id=user_id,
            start_date=start_date,
            end_date=end_date,
            count=count,
            offset=offset,
        )

    expose("create-link-token", create_link_token)
    expose("exchange-public-token", exchange_public_token)
    expose("get-accounts", get_accounts)
    expose("sync-transactions", sync_transactions)
    expose("get-transactions", get_transactions)
    expose("get-recurring-transactions", get_recurring_transactions)
    expose("set-refresh-schedule", set_refresh_schedule)
    expose("get-auth-data", get_auth_data)
    expose("get-bank-transfer-events", get_bank_transfer_events)
    expose("process-webhook", process_webhook)

    if context.transactions_enabled:

        @mcp.resource(
            "transactions://{user_id}",
            name="transactions",
            mime_type="application/json",
        )
        async def transactions_resource(user_id: str) -> str:
            return _dumps(await transactions_view(context, user_id))

        @mcp.resource(
            "refresh-settings://{user_id}",
            name="refresh-settings",
            mime_type="application/json",
        )
        def refresh_settings_resource(user_id: str) -> str:
            return _dumps(refresh_settings_view(context, user_id))

    @mcp.resource(
        "webhook-events://{user_id}",
        name="webhook-events",
        mime_type="application/json",
    )
    def webhook_events_resource(user_id: str) -> str:
        return _dumps(webhook_events_view(context, user_id))

    @mcp.resource(
        "auth-data://{user_id}", name="auth-data", mime_type="application/json"
    )
    def auth_data_resource(user_id: str) -> str:
        return _dumps(auth_data_view(context, user_id))

    @mcp.prompt(name="connect-bank-account")
    def connect_bank_account(user_id: UserId) -> str:
        """Walk through linking a bank account with Plaid Link."""
        return connect_bank_account_prompt(user_id)

    @mcp.custom_route("/health", methods=["GET"])
    async def health_check(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "timestamp": utc_now_iso()})

    @mcp.custom_route("/webhook/plaid", methods=["POST"])
    async def plaid_webhook(request: Request) -> PlainTextResponse:
        # Plaid retries anything but a 200, so every delivery is acknowledged.
        try:
            payload = await request.json()
        except ValueError as e:
            logger.warning("Ignoring Plaid webhook with invalid JSON body: {}", e)
            return PlainTextResponse(WEBHOOK_ACK)

        if not isinstance(payload, dict):
            logger.warning("Ignoring Plaid webhook with non-object body")
            return PlainTextResponse(WEBHOOK_ACK)

        try:
            result = await context.dispatcher.handle(payload)
        except Exception as e:
            logger.exception("Error processing Plaid webhook: {}", e)
        else:
            if not result.success:
                logger.warning("Plaid webhook not processed: {}", result.error)
        return PlainTextResponse(WEBHOOK_ACK)

    return mcp


def build_http_app(mcp: FastMCP, config: AppConfig) -> Starlette:
    """SSE app (GET /sse, POST /messages/) plus custom routes, behind CORS."""
    app = mcp.sse_app()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.allowed_origins),
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    return app


def run_server(
    context: AppContext,
    *,
    transport: Transport = "stdio",
    host: str | None = None,
    port: int | None = None,
) -> None:
    """Serve until interrupted, then cancel every refresh trigger."""
    mcp = create_server(context)
    config = context.config
    try:
        if transport == "stdio":
            logger.info("Starting plaidsync MCP server on stdio")
            mcp.run(transport="stdio")
        else:
            bind_host = host or config.host
            bind_port = port or config.port
            logger.info(
                "Starting plaidsync MCP server: SSE at http://{}:{}/sse, "
                "Plaid webhooks at /webhook/plaid",
                bind_host,
                bind_port,
            )
            uvicorn.run(
                build_http_app(mcp, config),
                host=bind_host,
                port=bind_port,
                log_level=config.log_level.lower(),
            )
    finally:
        context.shutdown()
