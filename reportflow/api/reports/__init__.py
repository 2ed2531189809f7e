"""Manual run and execution history endpoints."""
