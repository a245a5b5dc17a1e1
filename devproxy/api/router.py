"""Main API router"""
from fastapi import APIRouter

from devproxy.api import health, metrics, upstream

health_router = APIRouter()
health_router.include_router(health.router, tags=['health'])

metrics_router = APIRouter()
metrics_router.include_router(metrics.router, tags=['metrics'])

# Catch-all; must be included after every other router
upstream_router = APIRouter()
upstream_router.include_router(upstream.router, tags=['upstream'])
