"""Pydantic schemas for API requests/responses."""

from pms.schemas.common import ErrorResponse

__all__ = ["ErrorResponse"]
