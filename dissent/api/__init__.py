"""REST API for the conflict ledger and scans (FastAPI)."""
