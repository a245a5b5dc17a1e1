"""Prometheus metrics for the development proxy"""

from prometheus_client import Counter, Histogram, Info

INTERCEPTED_REQUESTS = Counter(
    "feo_proxy_intercepted_requests_total",
    "Total number of requests matched by the FEO interceptor",
    ["resource", "outcome"],
)

SCRIPT_DURATION = Histogram(
    "feo_proxy_script_duration_seconds",
    "Time spent running the transformation script",
    ["resource"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, float("inf")),
)

# Application info
APP_INFO = Info("feo_proxy_app", "Application information")
