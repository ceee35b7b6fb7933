"""
Pydantic models for API responses.

Most endpoints return domain models directly. This module only holds the
response models that are API concerns.
"""

from datetime import datetime

from pydantic import BaseModel


class HealthCheckResponse(BaseModel):
    """Response for health check endpoint."""

    status: str
    version: str
    timestamp: datetime


class DocumentDeletedResponse(BaseModel):
    """Response for a successful document deletion."""

    document_id: str
