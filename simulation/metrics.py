"""
Prometheus metrics for the flight state engine.
"""

from prometheus_client import Counter, Gauge, Histogram

TICKS_TOTAL = Counter(
    'engine_ticks_total',
    'Simulation ticks completed'
)

TICK_LATENCY = Histogram(
    'engine_tick_latency_seconds',
    'Time spent simulating, alerting and publishing one tick',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

FLIGHTS_ACTIVE = Gauge(
    'engine_flights_active',
    'Flights in the simulated population'
)

ALERTS_CREATED = Counter(
    'engine_alerts_created_total',
    'Alerts created',
    ['type', 'severity']
)

ALERTS_ACTIVE = Gauge(
    'engine_alerts_active',
    'Live alerts'
)

MONITOR_ERRORS = Counter(
    'engine_monitor_errors_total',
    'Per-flight alert evaluation failures'
)

RECORDINGS_ACTIVE = Gauge(
    'engine_recordings_active',
    'Flights opted into position recording'
)

RECORD_RESULTS = Counter(
    'engine_record_results_total',
    'Position recording outcomes',
    ['outcome']  # saved, unchanged, failed
)

PERSIST_LATENCY = Histogram(
    'engine_persist_latency_seconds',
    'Position store write latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

PERSIST_SKIPPED = Counter(
    'engine_persist_skipped_total',
    'Recording requests skipped because the previous one was still running'
)

SUBSCRIBER_ERRORS = Counter(
    'engine_subscriber_errors_total',
    'Broadcast listeners dropped after failing'
)
