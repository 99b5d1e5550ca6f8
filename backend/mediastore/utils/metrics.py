"""
Prometheus metrics definitions for the API and the storage layer.
All metrics are registered here and can be imported by other modules.
"""
from prometheus_client import Counter, Histogram

# HTTP request metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'path', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'path'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Error metrics
errors_total = Counter(
    'errors_total',
    'Total errors',
    ['error_type']
)

# Blob backend metrics
storage_operations_total = Counter(
    'storage_operations_total',
    'Total blob backend operations',
    ['operation', 'status']
)

storage_operation_duration_seconds = Histogram(
    'storage_operation_duration_seconds',
    'Blob backend operation duration in seconds',
    ['operation'],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

# Listing metrics
listing_pages_fetched_total = Counter(
    'listing_pages_fetched_total',
    'Backend list pages fetched',
    ['mode']
)

listing_truncated_total = Counter(
    'listing_truncated_total',
    'Recursive listings stopped by the page cap'
)

# Image pipeline metrics
image_optimizations_total = Counter(
    'image_optimizations_total',
    'Image optimization runs',
    ['status']
)

image_optimization_duration_seconds = Histogram(
    'image_optimization_duration_seconds',
    'Decode, resize and encode duration in seconds',
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0]
)

cleanup_failures_total = Counter(
    'cleanup_failures_total',
    'Superseded assets that could not be deleted'
)
