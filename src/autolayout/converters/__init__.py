"""Scene format converters."""
