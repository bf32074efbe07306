from __future__ import annotations

import re
from typing import List, Sequence, Tuple

from secwatch.contracts import Alert
from secwatch.rules.base import Rule
from secwatch.rules.common import (
    PYTHON_SUFFIXES,
    LinePattern,
    annotate,
    comment_out,
    comment_prefix,
    config_reference,
    is_annotated,
    is_comment_line,
    is_in_comment,
    is_in_string,
    split_lines,
    with_line,
    with_span,
)


class LinePatternRule(Rule):
    """Runs a table of patterns over every non-comment line."""

    skip_comment_lines = True

    def __init__(self, patterns: Sequence[LinePattern]) -> None:
        self.patterns = tuple(patterns)

    def scan(self, text: str, path: str) -> List[Alert]:
        alerts: List[Alert] = []
        lines = split_lines(text)
        active = [entry for entry in self.patterns if entry.applies_to(path)]
        for idx, line in enumerate(lines):
            if self.skip_comment_lines and is_comment_line(line):
                continue
            if is_annotated(line):
                continue
            for entry in active:
                for match in entry.regex.finditer(line):
                    if not self.accept(line, match):
                        continue
                    alerts.append(
                        self.alert(
                            path,
                            text,
                            idx,
                            match.start(),
                            match.group(0),
                            self.message(entry, match),
                            self.remediate(lines, idx, match, entry, path),
                        )
                    )
        return alerts

    def accept(self, line: str, match: re.Match) -> bool:
        return True

    def message(self, entry: LinePattern, match: re.Match) -> str:
        return entry.message

    def remediate(self, lines: List[str], idx: int, match: re.Match, entry: LinePattern, path: str) -> str:
        raise NotImplementedError


EVAL_PATTERNS: Tuple[LinePattern, ...] = (
    LinePattern(
        "eval()",
        re.compile(r"(?<![\w.])eval\s*\("),
        "eval() executes arbitrary code. Parse data with a safe loader instead.",
    ),
    LinePattern(
        "new Function()",
        re.compile(r"new\s+Function\s*\("),
        "new Function() is equivalent to eval(). Avoid dynamic code generation.",
    ),
    LinePattern(
        "setTimeout with string",
        re.compile(r"setTimeout\s*\(\s*[\"'`]"),
        "setTimeout with string argument uses eval internally. Pass a function instead.",
    ),
    LinePattern(
        "setInterval with string",
        re.compile(r"setInterval\s*\(\s*[\"'`]"),
        "setInterval with string argument uses eval internally. Pass a function instead.",
    ),
    LinePattern(
        "exec()",
        re.compile(r"(?<![\w.])exec\s*\(\s*(?![\"'\s)])"),
        "exec() runs a string as Python code. Dispatch to known functions instead.",
        only=PYTHON_SUFFIXES,
    ),
)


class EvalDetectionRule(LinePatternRule):
    id = "eval-detection"
    name = "Eval/new Function() Detection"
    severity = "critical"
    description = "Detects dynamic code execution that could lead to RCE"

    def __init__(self, patterns: Sequence[LinePattern] = EVAL_PATTERNS) -> None:
        super().__init__(patterns)

    def accept(self, line: str, match: re.Match) -> bool:
        # Mentions inside string literals are documentation, not calls.
        return not is_in_string(line, match.start())

    def message(self, entry: LinePattern, match: re.Match) -> str:
        return f"{entry.name} detected! {entry.message}"

    def remediate(self, lines, idx, match, entry, path):
        return with_line(lines, idx, annotate(lines[idx], comment_prefix(path), f"SECURITY: Remove {entry.name}"))


_STAR = r"['\"]\*['\"]"
_ORIGIN_HEADER = r"['\"]Access-Control-Allow-Origin['\"]"

CORS_PATTERNS: Tuple[LinePattern, ...] = (
    LinePattern(
        "header literal",
        re.compile(rf"Access-Control-Allow-Origin['\":\s]+{_STAR}", re.IGNORECASE),
        "CORS header allows all origins. Restrict to specific domains.",
    ),
    LinePattern(
        "cors() wildcard",
        re.compile(rf"cors\s*\(\s*\{{\s*origin\s*:\s*{_STAR}", re.IGNORECASE),
        "CORS middleware allows all origins. Specify allowed domains.",
    ),
    LinePattern(
        "cors() reflect",
        re.compile(r"cors\s*\(\s*\{\s*origin\s*:\s*true\b", re.IGNORECASE),
        "CORS origin:true reflects any origin. Use an allow list instead.",
    ),
    LinePattern(
        "header call",
        re.compile(rf"\w*header\s*\(\s*{_ORIGIN_HEADER}\s*,\s*{_STAR}", re.IGNORECASE),
        "Setting the CORS header to * allows any website to access your API.",
    ),
    LinePattern(
        "header assignment",
        re.compile(rf"headers\s*\[\s*{_ORIGIN_HEADER}\s*\]\s*=\s*{_STAR}", re.IGNORECASE),
        "CORS header allows all origins. This is a security risk.",
    ),
    LinePattern(
        "allow_origins wildcard",
        re.compile(rf"allow_origins\s*=\s*\[\s*{_STAR}\s*\]"),
        "CORS middleware allows all origins. Specify allowed domains.",
    ),
    LinePattern(
        "origins wildcard",
        re.compile(rf"\borigins\s*=\s*{_STAR}"),
        "CORS extension allows all origins. Specify allowed domains.",
    ),
)

_WILDCARD_RE = re.compile(rf"{_STAR}|\btrue\b", re.IGNORECASE)


class CorsWildcardRule(LinePatternRule):
    id = "cors-wildcard-detection"
    name = "CORS Wildcard Detection"
    severity = "high"
    description = "Detects overly permissive CORS configurations that allow any origin"
    skip_comment_lines = False

    def __init__(self, patterns: Sequence[LinePattern] = CORS_PATTERNS) -> None:
        super().__init__(patterns)

    def remediate(self, lines, idx, match, entry, path):
        # Only the wildcard itself is swapped out.
        fixed = _WILDCARD_RE.sub(
            lambda _: config_reference("ALLOWED_ORIGIN", path), match.group(0), count=1
        )
        return with_span(lines, idx, match.start(), match.end(), fixed)


_CIPHER = r"createCipher(?:iv)?\s*\(\s*['\"]"

WEAK_CRYPTO_PATTERNS: Tuple[LinePattern, ...] = (
    LinePattern(
        "MD5",
        re.compile(r"\bmd5\s*\(|createHash\s*\(\s*['\"]md5['\"]|hashlib\.new\s*\(\s*['\"]md5['\"]", re.IGNORECASE),
        "Use SHA-256 or bcrypt for passwords",
    ),
    LinePattern(
        "SHA1",
        re.compile(r"\bsha1\s*\(|createHash\s*\(\s*['\"]sha1?['\"]|hashlib\.new\s*\(\s*['\"]sha1['\"]", re.IGNORECASE),
        "Use SHA-256 or stronger",
    ),
    LinePattern("DES", re.compile(rf"{_CIPHER}des['\"]|\bDES\.new\s*\(", re.IGNORECASE), "Use AES-256-GCM instead"),
    LinePattern("RC4", re.compile(rf"{_CIPHER}rc4['\"]|\bARC4\.new\s*\(", re.IGNORECASE), "Use AES-256-GCM instead"),
    LinePattern(
        "Blowfish (weak key)",
        re.compile(rf"{_CIPHER}bf['\"]|\bBlowfish\.new\s*\(", re.IGNORECASE),
        "Use AES-256-GCM instead",
    ),
    LinePattern(
        "ECB mode",
        re.compile(r"aes-\d+-ecb|DES-ECB|MODE_ECB|modes\.ECB\b", re.IGNORECASE),
        "ECB mode is insecure. Use GCM or CBC with HMAC",
    ),
)


class WeakCryptoRule(LinePatternRule):
    id = "weak-crypto-detection"
    name = "Weak Cryptography Detection"
    severity = "high"
    description = "Detects usage of weak or broken cryptographic algorithms"

    def __init__(self, patterns: Sequence[LinePattern] = WEAK_CRYPTO_PATTERNS) -> None:
        super().__init__(patterns)

    def message(self, entry: LinePattern, match: re.Match) -> str:
        return f"Weak crypto: {entry.name} is broken/deprecated. {entry.message}"

    def remediate(self, lines, idx, match, entry, path):
        note = f"SECURITY: Replace weak crypto ({entry.name})"
        return with_line(lines, idx, annotate(lines[idx], comment_prefix(path), note))


SENSITIVE_NAMES: Tuple[str, ...] = (
    "password", "passwd", "pwd", "secret", "token", "apikey", "api_key",
    "auth", "credential", "private", "key", "bearer", "jwt",
    "session", "cookie", "authorization", "accessToken", "refreshToken",
    "access_token", "refresh_token", "client_secret", "clientSecret",
)

_LOG_CALL = (
    r"(?:console\.(?:log|debug|info|warn|error)"
    r"|\bprint"
    r"|\blog(?:ger|ging)?\.(?:debug|info|warning|warn|error|exception|critical))"
)


class ConsoleSecretsRule(Rule):
    id = "console-secrets-detection"
    name = "Console.log Secrets Detection"
    severity = "medium"
    description = "Detects logging statements that might expose sensitive data"

    def __init__(self, names: Sequence[str] = SENSITIVE_NAMES) -> None:
        alternatives = "|".join(re.escape(name) for name in names)
        self.pattern = re.compile(rf"{_LOG_CALL}\s*\([^)]*\b({alternatives})\b", re.IGNORECASE)

    def scan(self, text: str, path: str) -> List[Alert]:
        alerts: List[Alert] = []
        lines = split_lines(text)
        prefix = comment_prefix(path)
        for idx, line in enumerate(lines):
            if is_comment_line(line):
                continue
            for match in self.pattern.finditer(line):
                if is_in_comment(line, match.start()):
                    continue
                alerts.append(
                    self.alert(
                        path,
                        text,
                        idx,
                        match.start(),
                        match.group(0),
                        f'Logging "{match.group(1)}" may leak sensitive data in production',
                        with_line(lines, idx, comment_out(line, prefix, "REMOVED (potential secret leak)")),
                    )
                )
        return alerts


COMMAND_INJECTION_PATTERNS: Tuple[LinePattern, ...] = (
    LinePattern(
        "exec template",
        re.compile(r"\bexec\s*\(\s*[`\"'].*\$\{"),
        "exec() with template literal - potential command injection",
        skip=PYTHON_SUFFIXES,
    ),
    LinePattern(
        "exec concatenation",
        re.compile(r"\bexec\s*\(\s*\w+\s*\+"),
        "exec() with string concatenation - potential command injection",
        skip=PYTHON_SUFFIXES,
    ),
    LinePattern(
        "execSync template",
        re.compile(r"\bexecSync\s*\(\s*[`\"'].*\$\{"),
        "execSync() with template literal - potential command injection",
    ),
    LinePattern(
        "spawn variable",
        re.compile(r"\bspawn\s*\(\s*\w+\s*[,)]"),
        "spawn() with variable command - verify input is sanitized",
        skip=PYTHON_SUFFIXES,
    ),
    LinePattern(
        "shell option",
        re.compile(r"\bshell\s*:\s*true\b"),
        "shell:true enables shell injection. Use spawn with shell:false",
    ),
    LinePattern(
        "exec request input",
        re.compile(r"\bexec(?:Sync)?\s*\(.*\breq\.(?:body|query|params)"),
        "exec() with request input - HIGH RISK command injection!",
    ),
    LinePattern(
        "shell=True",
        re.compile(r"\bshell\s*=\s*True\b"),
        "shell=True passes the command through the shell. Pass an argument list instead",
        only=PYTHON_SUFFIXES,
    ),
    LinePattern(
        "os.system dynamic",
        re.compile(
            r"\bos\.(?:system|popen)\s*\(\s*(?:[rRbBuU]?[fF][rR]?[\"']|[\"'][^\"']*[\"']\s*[+%]|\w+\s*\+|.*\.format\()"
        ),
        "os.system()/os.popen() with a built command string - potential command injection",
        only=PYTHON_SUFFIXES,
    ),
    LinePattern(
        "subprocess f-string",
        re.compile(r"\bsubprocess\.\w+\s*\(\s*[fF][\"']"),
        "subprocess call with an interpolated command string - potential command injection",
        only=PYTHON_SUFFIXES,
    ),
)


class CommandInjectionRule(LinePatternRule):
    id = "command-injection-detection"
    name = "Command Injection Detection"
    severity = "critical"
    description = "Detects potential command injection in process-spawning calls"

    def __init__(self, patterns: Sequence[LinePattern] = COMMAND_INJECTION_PATTERNS) -> None:
        super().__init__(patterns)

    def remediate(self, lines, idx, match, entry, path):
        return with_line(lines, idx, annotate(lines[idx], comment_prefix(path), "SECURITY REVIEW REQUIRED"))
