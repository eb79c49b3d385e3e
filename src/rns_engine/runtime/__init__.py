"""Runtime services: telemetry and the in-process event bus."""
