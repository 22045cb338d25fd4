"""API Pulse — multi-tenant API probing, scheduling and cost tracking engine."""

__version__ = "0.1.0"
