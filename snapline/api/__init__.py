"""HTTP API layer for Snapline."""
