"""Application layer wiring settings, deployment and doctor services."""
