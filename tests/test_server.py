"""
Tests for the gateway HTTP surface: session allocation, polling, retirement
and configuration.
"""

import uuid
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from toolgate.server.app import ToolgateServer, create_app
from toolgate.server.config import ServerConfig
from toolgate.server.sessions import SessionRegistry
from toolgate.tools import RemoteToolService, ToolDef, random_int_tool

BAD_SESSION_BODY = {
    "jsonrpc": "2.0",
    "error": {"code": -32000, "message": "Bad Session"},
    "id": None,
}


@pytest.fixture
def registry():
    return SessionRegistry(RemoteToolService([random_int_tool(lambda n: n - 1)]))


@pytest.fixture
def client(registry):
    app = create_app(ServerConfig(), registry=registry)
    with TestClient(app) as client:
        yield client


def rpc(method, params=None, id=1):
    body = {"jsonrpc": "2.0", "method": method, "id": id}
    if params is not None:
        body["params"] = params
    return body


class TestServerConfig:
    def test_defaults(self):
        config = ServerConfig()
        assert config.port == 8080
        assert config.session_header == "Session-Id"
        assert config.session_idle_timeout is None
        assert config.cors_origins == ["*"]

    def test_from_env(self):
        env = {
            "TOOLGATE_HOST": "127.0.0.1",
            "TOOLGATE_PORT": "9000",
            "TOOLGATE_CORS_ORIGINS": "http://a.test,http://b.test",
            "TOOLGATE_SESSION_IDLE_TIMEOUT": "300",
            "TOOLGATE_DEBUG": "true",
        }
        with patch.dict("os.environ", env, clear=True):
            config = ServerConfig.from_env()
        assert config.host == "127.0.0.1"
        assert config.port == 9000
        assert config.cors_origins == ["http://a.test", "http://b.test"]
        assert config.session_idle_timeout == 300.0
        assert config.debug is True

    def test_from_env_defaults(self):
        with patch.dict("os.environ", {}, clear=True):
            config = ServerConfig.from_env()
        assert config.port == 8080
        assert config.debug is False

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValueError):
            ServerConfig(session_idle_timeout=0)
        with pytest.raises(ValueError):
            ServerConfig(reap_interval=-1)


class TestPostInvoke:
    def test_allocates_session(self, client, registry):
        response = client.post("/invoke", json=rpc("initialize"))
        assert response.status_code == 200
        session_id = response.headers["Session-Id"]
        uuid.UUID(session_id)
        assert session_id in registry
        assert response.json()["result"]["serverInfo"]["name"] == "random-int-server"

    def test_fresh_ids_are_distinct(self, client):
        a = client.post("/invoke", json=rpc("ping")).headers["Session-Id"]
        b = client.post("/invoke", json=rpc("ping")).headers["Session-Id"]
        assert a != b

    def test_reuses_supplied_session(self, client, registry):
        first = client.post("/invoke", json=rpc("initialize"))
        session_id = first.headers["Session-Id"]

        response = client.post(
            "/invoke",
            json=rpc("tools/call", {"name": "randomInt", "arguments": {"max": 10}}, id=2),
            headers={"Session-Id": session_id},
        )
        assert response.status_code == 200
        assert response.headers["Session-Id"] == session_id
        assert response.json() == {
            "jsonrpc": "2.0",
            "result": {"content": [{"type": "text", "text": "9"}], "isError": False},
            "id": 2,
        }
        assert len(registry) == 1
        assert registry.get(session_id).request_count == 2

    def test_adopts_client_chosen_id(self, client, registry):
        response = client.post("/invoke", json=rpc("ping"), headers={"Session-Id": "mine"})
        assert response.headers["Session-Id"] == "mine"
        assert "mine" in registry

    def test_tool_failure_is_result_not_error(self, client):
        response = client.post(
            "/invoke", json=rpc("tools/call", {"name": "randomInt", "arguments": {"max": -1}})
        )
        assert response.status_code == 200
        assert response.json()["result"]["isError"] is True

    def test_notification_accepted(self, client):
        response = client.post(
            "/invoke", json={"jsonrpc": "2.0", "method": "notifications/initialized"}
        )
        assert response.status_code == 202
        assert response.content == b""
        assert "Session-Id" in response.headers

    def test_parse_error(self, client, registry):
        response = client.post(
            "/invoke", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32700
        assert len(registry) == 0

    def test_invalid_request(self, client):
        response = client.post("/invoke", json={"jsonrpc": "2.0", "id": 1})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32600
        assert response.json()["id"] == 1

    def test_method_not_found(self, client):
        response = client.post("/invoke", json=rpc("prompts/list"))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == -32601

    def test_internal_error(self):
        def boom(args):
            raise RuntimeError("kaboom")

        service = RemoteToolService([ToolDef(name="boom", description="", handler=boom)])
        with TestClient(create_app(ServerConfig(), service=service)) as client:
            response = client.post("/invoke", json=rpc("tools/call", {"name": "boom"}))
        assert response.status_code == 500
        assert response.json()["error"] == {"code": -32603, "message": "Internal error"}


class TestGetInvoke:
    def test_unknown_session(self, client, registry):
        response = client.get("/invoke", params={"session": "does-not-exist"})
        assert response.status_code == 400
        assert response.json() == BAD_SESSION_BODY
        assert len(registry) == 0

    def test_missing_session(self, client, registry):
        response = client.get("/invoke")
        assert response.status_code == 400
        assert response.json() == BAD_SESSION_BODY
        assert len(registry) == 0

    def test_unknown_session_header(self, client, registry):
        response = client.get("/invoke", headers={"Session-Id": "nope"})
        assert response.status_code == 400
        assert response.json() == BAD_SESSION_BODY
        assert len(registry) == 0

    def test_polls_notifications(self, client):
        session_id = client.post("/invoke", json=rpc("tools/call", {"name": "randomInt"})).headers[
            "Session-Id"
        ]
        response = client.get("/invoke", params={"session": session_id})
        assert response.status_code == 200
        pending = response.json()
        assert len(pending) == 1
        assert pending[0]["method"] == "notifications/message"

        again = client.get("/invoke", headers={"Session-Id": session_id})
        assert again.json() == []

    def test_query_parameter_wins(self, client):
        session_id = client.post("/invoke", json=rpc("ping")).headers["Session-Id"]
        response = client.get(
            "/invoke", params={"session": session_id}, headers={"Session-Id": "other"}
        )
        assert response.status_code == 200
        assert response.headers["Session-Id"] == session_id

        response = client.get(
            "/invoke", params={"session": "other"}, headers={"Session-Id": session_id}
        )
        assert response.status_code == 400


class TestDeleteInvoke:
    def test_retire_session(self, client, registry):
        session_id = client.post("/invoke", json=rpc("ping")).headers["Session-Id"]
        response = client.delete("/invoke", headers={"Session-Id": session_id})
        assert response.status_code == 204
        assert session_id not in registry

        response = client.get("/invoke", params={"session": session_id})
        assert response.status_code == 400

    def test_retire_unknown(self, client):
        response = client.delete("/invoke", params={"session": "ghost"})
        assert response.status_code == 400
        assert response.json() == BAD_SESSION_BODY


class TestHealthAndCors:
    def test_health(self, client):
        client.post("/invoke", json=rpc("ping"))
        response = client.get("/health")
        assert response.json() == {"status": "ok", "sessions": 1}

    def test_session_header_exposed(self, client):
        response = client.post(
            "/invoke", json=rpc("ping"), headers={"Origin": "http://localhost:5173"}
        )
        exposed = response.headers["access-control-expose-headers"]
        assert "Session-Id" in exposed


class TestToolgateServer:
    def test_builds_app(self):
        server = ToolgateServer(port=9999, session_idle_timeout=30)
        assert server.config.port == 9999
        assert server.app.state.config.session_idle_timeout == 30
        assert len(server.registry) == 0

    @patch("uvicorn.run")
    def test_run(self, mock_run):
        server = ToolgateServer(host="127.0.0.1", port=9001)
        server.run()
        mock_run.assert_called_once_with(
            server.app, host="127.0.0.1", port=9001, log_level="info"
        )

    @patch("uvicorn.run")
    def test_cli(self, mock_run, capsys):
        from toolgate.server.cli import main

        main(["--port", "9002", "--cors-origins", "http://a.test"])
        args, kwargs = mock_run.call_args
        assert kwargs["port"] == 9002
        assert args[0].state.config.cors_origins == ["http://a.test"]
        assert ":9002/invoke" in capsys.readouterr().out
