"""FastAPI boundary for the revenue battle: webhooks, public totals, health."""
