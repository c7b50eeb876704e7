"""
schemas/common.py

Shared response shapes (Pydantic v2):
  1) error response: ErrorDetail, ErrorResponse
  2) success envelope: envelope()
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


# =========================================================
# 1) Error response
# =========================================================

class ErrorDetail(BaseModel):
    code: str = Field(..., description="error code (e.g. VALIDATION_ERROR, CONFLICT)")
    message: str = Field(..., description="human readable message")
    details: Dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Body returned by middlewares/error_handler.py."""
    success: bool = False
    error: ErrorDetail
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(extra="ignore")


# =========================================================
# 2) Success envelope
# =========================================================

def envelope(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body
