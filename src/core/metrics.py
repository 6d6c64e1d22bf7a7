"""
Prometheus Metrics for Observability

Tracks per-stage pipeline latency, overlay outcomes and HTTP traffic.
Exposes /api/v1/metrics for Prometheus scraping.
"""

import time
from contextlib import contextmanager

from prometheus_client import (
    Counter,
    Histogram,
    Info,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY
)

# =============================================================================
# Metrics Definitions
# =============================================================================

# Pipeline Latency - Per Stage
pipeline_latency_seconds = Histogram(
    "overlay_stage_latency_seconds",
    "Time spent in each overlay pipeline stage",
    labelnames=["stage", "status"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Total Pipeline Duration
pipeline_total_duration = Histogram(
    "overlay_pipeline_duration_seconds",
    "Total time for one overlay request",
    labelnames=["status"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

# Overlay outcomes
overlays_total = Counter(
    "overlay_requests_total",
    "Total number of overlay requests processed",
    labelnames=["status", "failure_stage"]
)

payload_bytes = Histogram(
    "overlay_payload_bytes",
    "Combined size of the two embedded input images",
    buckets=[64_000, 256_000, 1_000_000, 4_000_000, 8_000_000, 16_000_000, 32_000_000]
)

# Share of opaque pixels in each extracted layer. A threshold that has drifted
# out of calibration shows up here as layers near 0.0 or near 1.0.
layer_coverage_ratio = Histogram(
    "overlay_layer_coverage_ratio",
    "Fraction of opaque pixels in an extracted layer",
    labelnames=["layer"],
    buckets=[0.0, 0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 0.75, 0.9, 1.0]
)

# API Request Metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "endpoint", "status"]
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration",
    labelnames=["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Application Info
app_info = Info(
    "overlay_app",
    "Application information"
)


# =============================================================================
# Helper Functions
# =============================================================================

def set_app_info(version: str, environment: str):
    """Set application info metric."""
    app_info.info({
        "version": version,
        "environment": environment
    })


@contextmanager
def track_stage_latency(stage: str):
    """
    Context manager to track stage latency.

    Usage:
        with track_stage_latency("decode"):
            # do work
    """
    start = time.perf_counter()
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        pipeline_latency_seconds.labels(stage=stage, status=status).observe(
            time.perf_counter() - start
        )


def record_overlay_completion(status: str, duration_seconds: float, failure_stage: str = "none"):
    """Record one finished overlay request."""
    overlays_total.labels(status=status, failure_stage=failure_stage).inc()
    pipeline_total_duration.labels(status=status).observe(duration_seconds)


def record_layer_coverage(layer: str, coverage: float):
    layer_coverage_ratio.labels(layer=layer).observe(coverage)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
