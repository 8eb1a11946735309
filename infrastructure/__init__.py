"""Infrastructure layer — resilience patterns for the genre analyzer.

Modules:
    circuit_breaker  Circuit breaker for the genre-model adapter.
    guarded_adapter  ModelAdapter wrapper: breaker + adapter metrics.
    retry            Exponential backoff retry for weight/file loading.
    metrics          Prometheus metrics registry.
"""
