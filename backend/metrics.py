"""
Prometheus metrics for the host service.

Engine metrics live in simulation.metrics and share the default registry.
"""

import os
from fastapi.responses import Response
from prometheus_client import Counter, Gauge, generate_latest, CONTENT_TYPE_LATEST
from prometheus_client.multiprocess import MultiProcessCollector
from prometheus_client.registry import CollectorRegistry


WEBSOCKET_CONNECTIONS = Gauge(
    'backend_websocket_connections',
    'Active WebSocket connections'
)

WEBSOCKET_MESSAGES_SENT = Counter(
    'backend_websocket_messages_sent_total',
    'Messages sent by type',
    ['type']  # snapshot, tick, pong, error
)

HTTP_REQUESTS = Counter(
    'backend_http_requests_total',
    'HTTP requests',
    ['method', 'path', 'status']
)


async def get_metrics():
    """FastAPI handler for /metrics endpoint."""
    if 'PROMETHEUS_MULTIPROC_DIR' in os.environ:
        registry = CollectorRegistry()
        MultiProcessCollector(registry)
        output = generate_latest(registry)
    else:
        output = generate_latest()

    return Response(content=output, media_type=CONTENT_TYPE_LATEST)
