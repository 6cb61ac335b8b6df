"""
Core Infrastructure for tts-proxy.

This package provides foundational components:
    - config.py: Configuration loading and validation
    - errors.py: ApiError and the error envelope
    - logging/: Structured logging with numeric levels
    - metrics.py: Prometheus metrics collection
"""
