"""Prometheus metrics."""

from prometheus_client import Counter, Histogram

api_requests_total = Counter('api_requests_total', 'Total API requests', ['method', 'endpoint', 'status'])
api_request_duration = Histogram('api_request_duration_seconds', 'API request duration')
calls_initiated = Counter('calls_initiated_total', 'Total calls handed to the provider')
calls_failed = Counter('calls_failed_total', 'Total calls whose initiation failed')
webhooks_received = Counter('webhooks_received_total', 'Total provider webhook deliveries')
