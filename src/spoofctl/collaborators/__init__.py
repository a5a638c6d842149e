"""Adapters for package acquisition, service supervision, and notifications."""
