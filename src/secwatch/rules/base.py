from __future__ import annotations

from typing import List

from secwatch.contracts import Alert, RuleInfo, Severity


class Rule:
    """A stateless detector: ``scan`` depends only on its two arguments.

    Subclasses keep nothing but compiled patterns on the instance, so one rule
    object can serve any number of concurrent scans.
    """

    id: str = ""
    name: str = ""
    severity: Severity = "info"
    description: str = ""

    def scan(self, text: str, path: str) -> List[Alert]:
        raise NotImplementedError

    def info(self) -> RuleInfo:
        return RuleInfo(id=self.id, name=self.name, severity=self.severity, description=self.description)

    def alert(
        self,
        path: str,
        text: str,
        line_index: int,
        column: int,
        matched_text: str,
        message: str,
        proposed_fix: str,
    ) -> Alert:
        return Alert(
            file_path=path,
            severity=self.severity,
            rule_id=self.id,
            message=message,
            line=line_index + 1,
            column=column + 1,
            current_content=text,
            proposed_fix=proposed_fix,
            matched_text=matched_text,
        )
