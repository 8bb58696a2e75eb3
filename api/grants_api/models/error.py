"""Error response schema for 400, 404, 409, 422 and 502 responses."""

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Single top-level field detail (string). No extra keys."""

    detail: str
