"""
In-memory log of model interactions for the developer dashboard
"""

import threading
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class LLMRequestType(str, Enum):
    PDF_ANALYSIS = "PDF_ANALYSIS"
    MANUAL_J_CALCULATION = "MANUAL_J_CALCULATION"
    DATA_EXTRACTION = "DATA_EXTRACTION"
    CHAT = "CHAT"


class LogStatus(str, Enum):
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


class LogEntry(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    request_type: LLMRequestType
    prompt: str
    response: str
    processing_time_ms: float = Field(0.0, ge=0)
    status: LogStatus
    error_message: Optional[str] = None


class InteractionLog:
    """Thread-safe, bounded, newest-last store of LogEntry records"""

    def __init__(self, max_entries: int = 1000):
        self._entries: List[LogEntry] = []
        self._raw: List[Dict[str, Any]] = []
        self._lock = threading.Lock()
        self.max_entries = max_entries

    def log_interaction(
        self,
        request_type: LLMRequestType,
        prompt: str,
        response: str,
        processing_time_ms: float,
        status: LogStatus,
        error_message: Optional[str] = None,
    ) -> LogEntry:
        entry = LogEntry(
            request_type=request_type,
            prompt=prompt,
            response=response,
            processing_time_ms=processing_time_ms,
            status=status,
            error_message=error_message,
        )
        with self._lock:
            self._entries.append(entry)
            if len(self._entries) > self.max_entries:
                del self._entries[: len(self._entries) - self.max_entries]
        return entry

    def add_raw(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Store a client-submitted entry as-is, stamped with an id and time"""
        now = datetime.now(timezone.utc)
        entry = {
            **payload,
            "timestamp": now.isoformat(),
            "id": f"log_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:6]}",
        }
        with self._lock:
            self._raw.append(entry)
            if len(self._raw) > self.max_entries:
                del self._raw[: len(self._raw) - self.max_entries]
        return entry

    def get_raw(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._raw)

    def get_logs(self) -> List[LogEntry]:
        with self._lock:
            return list(self._entries)

    def get_log_by_id(self, log_id: str) -> Optional[LogEntry]:
        with self._lock:
            return next((entry for entry in self._entries if entry.id == log_id), None)

    def get_logs_by_request_type(self, request_type: LLMRequestType) -> List[LogEntry]:
        with self._lock:
            return [entry for entry in self._entries if entry.request_type == request_type]

    def get_logs_by_status(self, status: LogStatus) -> List[LogEntry]:
        with self._lock:
            return [entry for entry in self._entries if entry.status == status]

    def get_latest_logs(self, count: int) -> List[LogEntry]:
        if count <= 0:
            return []
        with self._lock:
            return list(self._entries[-count:])

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._raw.clear()
