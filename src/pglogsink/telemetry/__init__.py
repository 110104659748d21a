"""Logging adapters that feed stdlib log records into the sink."""
