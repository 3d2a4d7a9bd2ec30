from typing import Any, Optional

from pydantic import BaseModel


class ApiResponse(BaseModel):
    """Envelope for every endpoint: a tagged success or failure result."""
    success: bool
    message: str
    payload: Optional[Any] = None
