import hashlib
import json
import logging
from datetime import datetime
from typing import Optional, Dict, Any

from ...application.ports.audit_logger import AuditLogger


def hash_phone_number(phone: str) -> str:
    """One-way hash so audit lines never carry the raw number."""
    return hashlib.sha256(phone.encode()).hexdigest()


class StdAuditLogger(AuditLogger):
    def __init__(self, logger_name: str = "barber_core.audit") -> None:
        self._logger = logging.getLogger(logger_name)

    def log(self, action: str, phone: Optional[str], user_id: Optional[str] = None, success: bool = True, details: Optional[Dict[str, Any]] = None) -> None:
        entry = {
            "timestamp": datetime.utcnow().isoformat(),
            "action": action,
            "phone_hash": hash_phone_number(phone) if phone else None,
            "user_id": user_id,
            "success": success,
            "details": details or {},
        }
        self._logger.info(f"AUDIT: {json.dumps(entry)}")
