from __future__ import annotations

import asyncio

from plaid_fakes import FakePlaidClient, create_test_transaction, link_user, sync_page
from starlette.testclient import TestClient

from plaidsync.context import AppContext
from plaidsync.core.config import AppConfig
from plaidsync.tools.catalog import build_registry
from plaidsync.ui.mcp.server import WEBHOOK_ACK, build_http_app, create_server


class TestCreateServer:
    def test_exposes_registry_tools(self, context: AppContext) -> None:
        mcp = create_server(context)

        tools = asyncio.run(mcp.list_tools())

        assert {tool.name for tool in tools} == {
            "create-link-token",
            "exchange-public-token",
            "get-accounts",
            "sync-transactions",
            "get-transactions",
            "get-recurring-transactions",
            "set-refresh-schedule",
            "get-auth-data",
            "process-webhook",
        }

    def test_tool_arguments_are_snake_case(self, context: AppContext) -> None:
        mcp = create_server(context)

        tools = {tool.name: tool for tool in asyncio.run(mcp.list_tools())}

        properties = tools["get-transactions"].inputSchema["properties"]
        assert set(properties) == {
            "user_id",
            "start_date",
            "end_date",
            "account_id",
            "count",
            "offset",
        }

    def test_tool_arguments_agree_with_tool_schemas(self, context: AppContext) -> None:
        # setup
        registry = build_registry(context)
        mcp = create_server(context, registry)

        # act
        exposed = {tool.name: tool.inputSchema for tool in asyncio.run(mcp.list_tools())}

        # assert
        for name, mcp_schema in exposed.items():
            tool_schema = registry.get(name).input_schema
            assert set(mcp_schema["properties"]) == set(tool_schema["properties"]), name
            assert set(mcp_schema.get("required", [])) == set(tool_schema["required"]), name
            for prop, spec in tool_schema["properties"].items():
                for bound in ("minimum", "maximum", "default"):
                    if bound in spec:
                        assert mcp_schema["properties"][prop][bound] == spec[bound], (
                            f"{name}.{prop} {bound}"
                        )

    def test_auth_mode_hides_sync_tools(
        self, config: AppConfig, plaid_client: FakePlaidClient
    ) -> None:
        auth_config = AppConfig(
            plaid_client_id=config.plaid_client_id,
            plaid_secret=config.plaid_secret,
            features="auth",
        )
        context = AppContext.build(auth_config, plaid_client=plaid_client)  # type: ignore[arg-type]

        names = {tool.name for tool in asyncio.run(create_server(context).list_tools())}

        assert "sync-transactions" not in names
        assert "get-bank-transfer-events" in names

    def test_registers_connect_prompt(self, context: AppContext) -> None:
        prompts = asyncio.run(create_server(context).list_prompts())

        assert [prompt.name for prompt in prompts] == ["connect-bank-account"]


class TestHttpRoutes:
    def test_health(self, context: AppContext) -> None:
        app = build_http_app(create_server(context), context.config)

        with TestClient(app) as client:
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert "timestamp" in response.json()

    def test_plaid_webhook_dispatches_and_acknowledges(
        self, context: AppContext, plaid_client: FakePlaidClient
    ) -> None:
        # setup
        link_user(context)
        plaid_client.sync_pages = [
            sync_page(added=[create_test_transaction("t1")], next_cursor="c1")
        ]
        app = build_http_app(create_server(context), context.config)

        # act
        with TestClient(app) as client:
            response = client.post(
                "/webhook/plaid",
                json={
                    "webhook_type": "TRANSACTIONS",
                    "webhook_code": "SYNC_UPDATES_AVAILABLE",
                    "item_id": "item_1",
                },
            )

        # assert
        assert response.status_code == 200
        assert response.text == WEBHOOK_ACK
        assert context.stores.cursors.get("u1") == "c1"

    def test_plaid_webhook_acknowledges_unknown_item(self, context: AppContext) -> None:
        app = build_http_app(create_server(context), context.config)

        with TestClient(app) as client:
            response = client.post(
                "/webhook/plaid",
                json={"webhook_type": "ITEM", "webhook_code": "ERROR", "item_id": "x"},
            )

        assert response.status_code == 200
        assert response.text == WEBHOOK_ACK

    def test_plaid_webhook_acknowledges_invalid_json(self, context: AppContext) -> None:
        app = build_http_app(create_server(context), context.config)

        with TestClient(app) as client:
            response = client.post(
                "/webhook/plaid",
                content=b"not json",
                headers={"Content-Type": "application/json"},
            )

        assert response.status_code == 200

    def test_cors_allows_configured_origin(self, context: AppContext) -> None:
        app = build_http_app(create_server(context), context.config)

        with TestClient(app) as client:
            response = client.get("/health", headers={"Origin": "http://localhost:3000"})

        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
