from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Tuple

from secwatch.contracts import FixPayload, FixResponse, FixValidation
from secwatch.errors import FileAccessError, FixValidationError, SecwatchError, StaleContentError
from secwatch.tools.files import read_text, write_text

logger = logging.getLogger(__name__)

STALE_MESSAGE = "File has been modified since the scan. Please review the new content."


class FixApplier:
    """Writes a proposed fix only if the file still holds the scanned content.

    No lock is held between the read and the write; the exact content
    comparison is the only guard. Two racing fixes on one file are each safe
    because at most one can still see the original baseline.
    """

    async def apply_fix(self, payload: FixPayload) -> FixResponse:
        try:
            _check_payload(payload, require_replacement=True)
            target = await self._verify(payload)
            await asyncio.to_thread(write_text, target, payload.replacement_content)
        except SecwatchError as exc:
            logger.warning("Fix %s rejected for %s: %s", payload.alert_id, exc.file_path, exc)
            return _failure(payload, exc.file_path, str(exc), exc.code)
        except OSError as exc:
            logger.error("Error applying fix to %s: %s", payload.file_path, exc)
            return _failure(payload, payload.file_path, str(exc), "io")

        logger.info("Applied fix %s to %s", payload.alert_id, target)
        return FixResponse(success=True, file_path=str(target), alert_id=payload.alert_id)

    async def validate_fix(self, payload: FixPayload) -> FixValidation:
        """Pre-flight check: same verification as ``apply_fix`` without writing."""
        try:
            _check_payload(payload)
            await self._verify(payload)
        except SecwatchError as exc:
            return FixValidation(valid=False, reason=str(exc), code=exc.code)
        except OSError as exc:
            return FixValidation(valid=False, reason=str(exc), code="io")
        return FixValidation(valid=True)

    async def _verify(self, payload: FixPayload) -> Path:
        target, current = await asyncio.to_thread(_read_current, payload.file_path)
        if current != payload.original_content:
            raise StaleContentError(STALE_MESSAGE, str(target))
        return target


def _read_current(file_path: str) -> Tuple[Path, str]:
    try:
        target = Path(file_path).resolve()
    except RuntimeError:
        # Symlink loops on older interpreters.
        raise FixValidationError("Invalid file path provided", file_path) from None
    if not target.is_file() or not os.access(target, os.R_OK | os.W_OK):
        raise FileAccessError("File does not exist or is not accessible", str(target))

    try:
        return target, read_text(target)
    except UnicodeDecodeError:
        # Undecodable bytes can never equal the text baseline.
        raise StaleContentError(STALE_MESSAGE, str(target)) from None


def _check_payload(payload: FixPayload, require_replacement: bool = False) -> None:
    path = payload.file_path
    if not isinstance(path, str) or not path.strip() or "\x00" in path:
        raise FixValidationError("Invalid file path provided", path if isinstance(path, str) else None)
    if require_replacement and not isinstance(payload.replacement_content, str):
        raise FixValidationError("Invalid replacement content provided", path)
    if not isinstance(payload.original_content, str):
        raise FixValidationError("Invalid original content provided", path)


def _failure(payload: FixPayload, file_path, error: str, code: str) -> FixResponse:
    if not isinstance(file_path, str) or not file_path:
        file_path = "unknown"
    return FixResponse(success=False, file_path=file_path, alert_id=payload.alert_id, error=error, code=code)
