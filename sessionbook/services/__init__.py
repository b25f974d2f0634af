"""Service layer for the session scheduling engine."""
