"""Pydantic schemas for API request/response models."""
from .envelope import ApiResponse, ResponseMeta
from .jobs import SubmitResponse

__all__ = ["ApiResponse", "ResponseMeta", "SubmitResponse"]
