"""Pydantic models for the exporter HTTP API."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: int
