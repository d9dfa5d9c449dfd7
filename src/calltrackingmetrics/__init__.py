"""CallTrackingMetrics API client.

Minimal client for the CallTrackingMetrics REST API with on-demand token
authentication, typed errors and Prometheus statistics.
"""

__version__ = "0.1.0"
