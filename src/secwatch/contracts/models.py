from __future__ import annotations

import time
from typing import List, Literal, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


Severity = Literal["critical", "high", "medium", "low", "info"]
ChangeKind = Literal["added", "changed", "removed"]
FixErrorCode = Literal["validation", "stale", "io"]

# Event names on the client channel.
SCAN_RESULT = "scan-result"
FIX_APPLY = "fix-apply"
FIX_COMPLETE = "fix-complete"
FIX_ERROR = "fix-error"
CONNECTION_ESTABLISHED = "connection-established"


def now_ms() -> int:
    return int(time.time() * 1000)


def new_alert_id() -> str:
    return str(uuid.uuid4())


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Alert(WireModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_alert_id)
    file_path: str
    severity: Severity
    rule_id: str
    message: str
    line: int
    column: int
    current_content: str
    proposed_fix: str
    matched_text: str
    timestamp: int = Field(default_factory=now_ms)


class ScanResult(WireModel):
    model_config = ConfigDict(frozen=True)

    file_path: str
    alerts: List[Alert] = Field(default_factory=list)
    scanned_at: int = Field(default_factory=now_ms)


class FixPayload(WireModel):
    # Missing fields are let through so the applier can reject them with a reason.
    alert_id: str = ""
    file_path: Optional[str] = None
    original_content: Optional[str] = None
    replacement_content: Optional[str] = None


class FixResponse(WireModel):
    success: bool
    file_path: str
    alert_id: str
    error: Optional[str] = None
    code: Optional[FixErrorCode] = None


class FixValidation(WireModel):
    valid: bool
    reason: Optional[str] = None
    code: Optional[FixErrorCode] = None


class FileChangeEvent(WireModel):
    kind: ChangeKind
    file_path: str
    content: Optional[str] = None


class RuleInfo(WireModel):
    id: str
    name: str
    severity: Severity
    description: str
