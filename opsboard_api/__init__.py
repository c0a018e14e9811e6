"""HTTP API over the opsboard core (FastAPI)."""
