"""Request matcher deciding which responses the FEO interceptor captures."""

from typing import Optional

# Only the chrome-service static API is eligible for interception
STATIC_API_PREFIX = "/api/chrome-service/v1/static/"

# Generated artifacts served by chrome-service, keyed by path suffix
RESOURCE_SUFFIXES: dict[str, str] = {
    "/bundles-generated.json": "navigation",
    "/fed-modules-generated.json": "modules",
    "/search-index-generated.json": "search_index",
    "/service-tiles-generated.json": "service_tiles",
    "/widget-registry-generated.json": "widget_registry",
}


def match_resource(path: str) -> Optional[str]:
    """Return the logical resource name for an interceptable path, else None."""
    if STATIC_API_PREFIX not in path:
        return None
    for suffix, resource in RESOURCE_SUFFIXES.items():
        if path.endswith(suffix):
            return resource
    return None


def should_intercept(path: str) -> bool:
    """Check if the request path should be intercepted"""
    return match_resource(path) is not None
