"""Data acquisition and aggregation for the real-time telemetry dashboard."""
