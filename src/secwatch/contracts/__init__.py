from .models import (
    CONNECTION_ESTABLISHED,
    FIX_APPLY,
    FIX_COMPLETE,
    FIX_ERROR,
    SCAN_RESULT,
    Alert,
    ChangeKind,
    FileChangeEvent,
    FixPayload,
    FixResponse,
    FixValidation,
    RuleInfo,
    ScanResult,
    Severity,
    new_alert_id,
    now_ms,
)

__all__ = [
    "CONNECTION_ESTABLISHED",
    "FIX_APPLY",
    "FIX_COMPLETE",
    "FIX_ERROR",
    "SCAN_RESULT",
    "Alert",
    "ChangeKind",
    "FileChangeEvent",
    "FixPayload",
    "FixResponse",
    "FixValidation",
    "RuleInfo",
    "ScanResult",
    "Severity",
    "new_alert_id",
    "now_ms",
]
