"""Main application entry point"""
from typing import Optional

from fastapi import FastAPI

from devproxy import __version__
from devproxy.api.router import health_router, metrics_router, upstream_router
from devproxy.core.config import get_config, set_config
from devproxy.core.http_client import close_http_client
from devproxy.core.logging import get_logger
from devproxy.core.metrics import APP_INFO
from devproxy.core.middleware import InterceptionMiddleware
from devproxy.models.config import AppConfig
from devproxy.scripting.engine import ScriptEngine

logger = get_logger()


def create_app(
    config: Optional[AppConfig] = None,
    engine: Optional[ScriptEngine] = None,
) -> FastAPI:
    """Create and configure FastAPI application

    The transformation script is compiled here, before the application can
    serve anything; configuration or compile errors abort startup.
    """
    if config is None:
        config = get_config()
    else:
        set_config(config)

    interceptor = config.interceptor
    if engine is None:
        engine = ScriptEngine.provision(interceptor)

    app = FastAPI(
        title="Frontend Development Proxy",
        description="Development proxy merging local Frontend CRDs into chrome-service responses",
        version=__version__,
    )

    app.add_middleware(InterceptionMiddleware, config=interceptor, engine=engine)

    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(upstream_router)

    logger.info(
        f"FEO Interceptor provisioned: crd_path={interceptor.crd_path} "
        f"enabled={interceptor.enabled}"
    )

    @app.on_event("startup")
    async def startup_event():
        """Record application info on startup"""
        APP_INFO.info({
            'version': __version__,
            'title': 'Frontend Development Proxy',
        })
        logger.info(f"Forwarding to upstream: {config.upstream_url}")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Release the shared upstream client"""
        await close_http_client()

    return app
