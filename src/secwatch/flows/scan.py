from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from secwatch.contracts import ScanResult
from secwatch.engine import ScanEngine, is_test_file
from secwatch.tools.files import list_source_files, read_text

logger = logging.getLogger(__name__)


def run_scan(target_path: Path, engine: ScanEngine, skip_tests: bool = False) -> List[ScanResult]:
    """Scan a file or tree once, outside the watch loop."""
    if not target_path.exists():
        raise ValueError(f"No such file or directory: {target_path}")

    results: List[ScanResult] = []
    for path in list_source_files(target_path):
        resolved = str(path.resolve())
        if skip_tests and is_test_file(resolved):
            continue
        try:
            text = read_text(path)
        except UnicodeDecodeError:
            logger.debug("Skipping non UTF-8 file: %s", path)
            continue
        except OSError as exc:
            logger.warning("Could not read %s: %s", path, exc)
            continue
        results.append(engine.scan(text, resolved))
    return results
