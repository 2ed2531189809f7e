"""Schedule management endpoints."""
