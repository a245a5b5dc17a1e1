"""FEO interceptor middleware.

Captures chrome-service generated resources, runs them through the
transformation script and falls back to the original response whenever the
script layer fails.
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from devproxy.core.error_types import (
    ERROR_CODE_INTERCEPTOR,
    ERROR_TYPE_API,
    OUTCOME_ERROR,
    OUTCOME_FALLBACK,
    OUTCOME_PASSTHROUGH,
    OUTCOME_TRANSFORMED,
    error_body,
)
from devproxy.core.exceptions import ScriptError
from devproxy.core.logging import get_logger
from devproxy.core.matcher import match_resource
from devproxy.core.metrics import INTERCEPTED_REQUESTS, SCRIPT_DURATION
from devproxy.core.recorder import CapturedResponse, ResponseRecorder, buffer_all
from devproxy.models.config import InterceptorConfig
from devproxy.scripting.engine import ScriptEngine

logger = get_logger()

DEFAULT_CONTENT_TYPE = "application/json"


class InterceptionMiddleware(BaseHTTPMiddleware):
    """Rewrite matched chrome-service responses with the transformation script.

    Downstream errors propagate unchanged. Script errors fall back to the
    recorded response. Anything else raised while handling a captured
    response becomes a 500 for that request only.
    """

    def __init__(self, app, config: InterceptorConfig, engine: ScriptEngine) -> None:
        super().__init__(app)
        self.config = config
        self.engine = engine

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        resource = match_resource(path)

        if not self.config.enabled or resource is None:
            return await call_next(request)

        logger.debug(f"FEO intercepting request: path={path} url={request.url}")

        recorder = ResponseRecorder(should_buffer=buffer_all)
        try:
            await recorder.record(call_next, request)
        except Exception as e:
            logger.error(f"Upstream handler error: path={path} error={e}")
            raise

        try:
            return await self._handle_recorded(request, recorder, resource)
        except Exception as e:
            logger.exception(f"Unexpected error in FEO interceptor: path={path} error={e}")
            INTERCEPTED_REQUESTS.labels(resource=resource, outcome=OUTCOME_ERROR).inc()
            return JSONResponse(
                status_code=500,
                content=error_body(
                    f"FEO interceptor failed: {type(e).__name__}",
                    ERROR_TYPE_API,
                    ERROR_CODE_INTERCEPTOR,
                ),
            )

    async def _handle_recorded(
        self, request: Request, recorder: ResponseRecorder, resource: str
    ) -> Response:
        path = request.url.path

        if recorder.status != 200:
            logger.debug(
                f"Upstream returned non-200 status, passing through: "
                f"status={recorder.status} path={path}"
            )
            INTERCEPTED_REQUESTS.labels(resource=resource, outcome=OUTCOME_PASSTHROUGH).inc()
            return recorder.write_response()

        captured = recorder.captured
        logger.debug(f"Upstream response captured: size={len(captured.body)} path={path}")

        url = str(request.url)
        start_time = time.monotonic()
        try:
            upstream_body = captured.body.decode("utf-8")
            processed_body = await run_in_threadpool(
                self.engine.invoke, url, upstream_body, self.config.crd_path
            )
        except (ScriptError, UnicodeDecodeError) as e:
            logger.error(
                f"Failed to process request in script, returning original response: "
                f"path={path} url={url} error={e}"
            )
            INTERCEPTED_REQUESTS.labels(resource=resource, outcome=OUTCOME_FALLBACK).inc()
            return recorder.write_response()
        finally:
            SCRIPT_DURATION.labels(resource=resource).observe(time.monotonic() - start_time)

        response = self._transformed_response(captured, processed_body)
        INTERCEPTED_REQUESTS.labels(resource=resource, outcome=OUTCOME_TRANSFORMED).inc()
        logger.info(
            f"Request intercepted and processed successfully: path={path} "
            f"original_size={len(captured.body)} processed_size={len(response.body)}"
        )
        return response

    @staticmethod
    def _transformed_response(captured: CapturedResponse, body: str) -> Response:
        response = Response(content=body, status_code=200)

        # Recorded headers replace the defaults; the length follows the new body
        raw_headers = [
            (name, value)
            for name, value in captured.raw_headers
            if name.lower() != b"content-length"
        ]
        raw_headers.append((b"content-length", str(len(response.body)).encode("latin-1")))
        if not Headers(raw=raw_headers).get("content-type"):
            raw_headers = [
                (name, value) for name, value in raw_headers if name.lower() != b"content-type"
            ]
            raw_headers.append((b"content-type", DEFAULT_CONTENT_TYPE.encode("latin-1")))
        response.raw_headers = raw_headers
        return response
