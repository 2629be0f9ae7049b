# barber_core/schemas/common/common.py
from pydantic import BaseModel
from typing import Any, Dict, Optional
from datetime import datetime


class ErrorResponse(BaseModel):
    success: bool = False
    data: Optional[Dict[str, Any]] = None
    error: str


class MessageResponse(BaseModel):
    success: bool = True
    message: str
    data: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    status: str
    app: str
    version: str
    timestamp: datetime
