from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from secwatch.contracts import Alert, ScanResult
from secwatch.rules import Rule, default_rules
from secwatch.tools.files import should_skip_file

logger = logging.getLogger(__name__)

_TEST_PATH_MARKERS = (
    "/test/", "/tests/", "/__tests__/", "/spec/", "/specs/",
    "/fixture/", "/fixtures/", "/mock/", "/mocks/",
    ".test.", ".spec.",
)


class ScanEngine:
    """Ordered registry of rules run over one file at a time.

    Construct one per process and pass it to whoever scans; the rule set can
    be swapped at runtime through ``register_rule``/``unregister_rule``.
    """

    def __init__(self, rules: Optional[Iterable[Rule]] = None):
        self._rules: Dict[str, Rule] = {}
        for rule in rules or ():
            self.register_rule(rule)

    def register_rule(self, rule: Rule) -> None:
        if rule.id in self._rules:
            logger.info("Replacing rule %s", rule.id)
        else:
            logger.debug("Registered rule: %s (%s)", rule.name, rule.id)
        self._rules[rule.id] = rule

    def unregister_rule(self, rule_id: str) -> bool:
        return self._rules.pop(rule_id, None) is not None

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        return self._rules.get(rule_id)

    def rules(self) -> List[Rule]:
        return list(self._rules.values())

    def scan(self, text: str, path: str) -> ScanResult:
        if should_skip_file(path):
            return ScanResult(file_path=path, alerts=[])

        alerts: List[Alert] = []
        # Snapshot so a registration during the scan cannot disturb iteration.
        for rule in list(self._rules.values()):
            try:
                alerts.extend(rule.scan(text, path))
            except Exception:
                logger.exception("Rule %s failed on %s", rule.id, path)

        if alerts:
            logger.info("Found %d alert(s) in %s", len(alerts), path)
        return ScanResult(file_path=path, alerts=alerts)


def is_test_file(path: str) -> bool:
    lowered = path.lower().replace("\\", "/")
    return any(marker in lowered for marker in _TEST_PATH_MARKERS) or lowered.endswith(
        ("_test.py", "_test.ts", "_test.js")
    ) or lowered.rsplit("/", 1)[-1].startswith("test_")


def build_engine(disabled: Iterable[str] = ()) -> ScanEngine:
    skipped = set(disabled)
    unknown = skipped - {rule.id for rule in default_rules()}
    if unknown:
        logger.warning("Unknown rule id(s) in disabled list: %s", ", ".join(sorted(unknown)))
    return ScanEngine(rule for rule in default_rules() if rule.id not in skipped)
