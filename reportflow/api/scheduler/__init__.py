"""Poller control endpoints."""
