"""
hwguard - Hardware sensor monitor with an automatic thermal shutdown guard.

This package polls CPU, GPU and motherboard temperatures (plus load, memory
and network statistics) on the local host, serves the latest reading over a
small HTTP API, and schedules a cancellable OS shutdown when a monitored
temperature reaches its configured threshold.

Features:
- Ordered, fault-tolerant temperature resolver chain with per-source timeouts
- Thermal guard state machine with at most one shutdown request per incident
- Configuration via YAML with environment variable overrides
- Structured logging (JSON for production, text for development)
"""

__version__ = "0.3.0"
__all__ = ["__version__"]
