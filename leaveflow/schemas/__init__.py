"""API Schemas — Pydantic models for HTTP request and response bodies."""
