"""Redirection state manager and action reports."""
