from typing import List

from .base import Rule
from .code import (
    CommandInjectionRule,
    ConsoleSecretsRule,
    CorsWildcardRule,
    EvalDetectionRule,
    LinePatternRule,
    WeakCryptoRule,
)
from .secrets import (
    ApiKeyDetectionRule,
    CommentedSecretsRule,
    DatabaseConnectionRule,
    JwtTokenDetectionRule,
    PasswordDetectionRule,
    PrivateKeyDetectionRule,
)


def default_rules() -> List[Rule]:
    """Fresh instances of every built-in rule, most severe first."""
    return [
        PasswordDetectionRule(),
        ApiKeyDetectionRule(),
        PrivateKeyDetectionRule(),
        DatabaseConnectionRule(),
        EvalDetectionRule(),
        CommandInjectionRule(),
        JwtTokenDetectionRule(),
        CorsWildcardRule(),
        WeakCryptoRule(),
        ConsoleSecretsRule(),
        CommentedSecretsRule(),
    ]


__all__ = [
    "Rule",
    "LinePatternRule",
    "PasswordDetectionRule",
    "ApiKeyDetectionRule",
    "PrivateKeyDetectionRule",
    "JwtTokenDetectionRule",
    "DatabaseConnectionRule",
    "CommentedSecretsRule",
    "EvalDetectionRule",
    "CorsWildcardRule",
    "WeakCryptoRule",
    "ConsoleSecretsRule",
    "CommandInjectionRule",
    "default_rules",
]
