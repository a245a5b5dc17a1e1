"""Tests for the FEO interception middleware"""
from unittest.mock import Mock

import pytest
from fastapi import FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from fastapi.testclient import TestClient

from devproxy.core.error_types import ERROR_CODE_INTERCEPTOR
from devproxy.core.middleware import InterceptionMiddleware
from devproxy.models.config import InterceptorConfig
from devproxy.scripting.engine import ScriptEngine

STATIC = "/api/chrome-service/v1/static/stable/prod"

MERGE_SCRIPT = """
function processRequest(url, body, crd_path)
    local data = json_decode(body)
    data.merged = true
    return json_encode(data)
end
"""

FAILING_SCRIPT = """
function processRequest(url, body, crd_path)
    error("script exploded")
end
"""


def build_app(engine, enabled: bool = True) -> FastAPI:
    """Downstream handlers wrapped by the interceptor"""
    app = FastAPI()
    config = InterceptorConfig(crd_path="/tmp/frontend.yaml", enabled=enabled)
    app.add_middleware(InterceptionMiddleware, config=config, engine=engine)

    @app.get(f"{STATIC}/bundles-generated.json")
    async def bundles():
        return JSONResponse({"a": 1}, headers={"x-upstream": "yes", "cache-control": "no-cache"})

    @app.get(f"{STATIC}/search-index-generated.json")
    async def search_missing():
        return PlainTextResponse("not found", status_code=404)

    @app.get(f"{STATIC}/widget-registry-generated.json")
    async def widgets_without_content_type():
        return Response(content=b'{"a":1}')

    @app.get(f"{STATIC}/fed-modules-generated.json")
    async def modules_broken():
        raise RuntimeError("downstream exploded")

    @app.get(f"{STATIC}/service-tiles-generated.json")
    async def tiles_binary():
        return Response(content=b"\xff\xfe", media_type="application/json")

    @app.get("/api/other")
    async def other():
        return PlainTextResponse("untouched")

    return app


@pytest.fixture
def merge_client():
    return TestClient(build_app(ScriptEngine.from_source(MERGE_SCRIPT)))


@pytest.mark.unit
class TestInterceptionMiddleware:
    """Test InterceptionMiddleware dispatch"""

    def test_transforms_matched_response(self, merge_client):
        response = merge_client.get(f"{STATIC}/bundles-generated.json")

        assert response.status_code == 200
        assert response.text == '{"a":1,"merged":true}'
        assert response.headers["content-length"] == str(len(response.content))
        assert response.headers["content-type"] == "application/json"

    def test_recorded_headers_forwarded(self, merge_client):
        response = merge_client.get(f"{STATIC}/bundles-generated.json")

        assert response.headers["x-upstream"] == "yes"
        assert response.headers["cache-control"] == "no-cache"

    def test_content_type_defaults_to_json(self, merge_client):
        response = merge_client.get(f"{STATIC}/widget-registry-generated.json")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/json"
        assert response.json() == {"a": 1, "merged": True}

    def test_non_200_passes_through(self):
        engine = Mock(spec=ScriptEngine)
        client = TestClient(build_app(engine))

        response = client.get(f"{STATIC}/search-index-generated.json")

        assert response.status_code == 404
        assert response.text == "not found"
        engine.invoke.assert_not_called()

    def test_unmatched_path_not_intercepted(self):
        engine = Mock(spec=ScriptEngine)
        client = TestClient(build_app(engine))

        response = client.get("/api/other")

        assert response.text == "untouched"
        engine.invoke.assert_not_called()

    def test_disabled_passes_through(self):
        engine = Mock(spec=ScriptEngine)
        client = TestClient(build_app(engine, enabled=False))

        response = client.get(f"{STATIC}/bundles-generated.json")

        assert response.json() == {"a": 1}
        engine.invoke.assert_not_called()

    def test_script_error_falls_back_to_original(self):
        client = TestClient(build_app(ScriptEngine.from_source(FAILING_SCRIPT)))

        response = client.get(f"{STATIC}/bundles-generated.json")

        assert response.status_code == 200
        assert response.json() == {"a": 1}
        assert response.headers["x-upstream"] == "yes"

    def test_script_timeout_falls_back_to_original(self):
        engine = ScriptEngine.from_source(
            "function processRequest() while true do end end", timeout_secs=0.2
        )
        client = TestClient(build_app(engine))

        response = client.get(f"{STATIC}/bundles-generated.json")

        assert response.json() == {"a": 1}

    def test_non_utf8_body_falls_back(self):
        engine = Mock(spec=ScriptEngine)
        client = TestClient(build_app(engine))

        response = client.get(f"{STATIC}/service-tiles-generated.json")

        assert response.content == b"\xff\xfe"
        engine.invoke.assert_not_called()

    def test_script_receives_url_body_and_crd_path(self):
        engine = Mock(spec=ScriptEngine)
        engine.invoke.return_value = '{"ok":true}'
        client = TestClient(build_app(engine))

        response = client.get(f"{STATIC}/bundles-generated.json?v=2")

        assert response.json() == {"ok": True}
        url, body, crd_path = engine.invoke.call_args.args
        assert url.endswith(f"{STATIC}/bundles-generated.json?v=2")
        assert body == '{"a":1}'
        assert crd_path == "/tmp/frontend.yaml"

    def test_downstream_error_propagates(self):
        client = TestClient(build_app(Mock(spec=ScriptEngine)))

        with pytest.raises(RuntimeError, match="downstream exploded"):
            client.get(f"{STATIC}/fed-modules-generated.json")

    def test_unexpected_error_returns_500(self):
        engine = Mock(spec=ScriptEngine)
        engine.invoke.side_effect = RuntimeError("host bug")
        client = TestClient(build_app(engine))

        response = client.get(f"{STATIC}/bundles-generated.json")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == ERROR_CODE_INTERCEPTOR

    def test_requests_are_independent(self, merge_client):
        first = merge_client.get(f"{STATIC}/bundles-generated.json")
        second = merge_client.get(f"{STATIC}/bundles-generated.json")

        assert first.text == second.text == '{"a":1,"merged":true}'
