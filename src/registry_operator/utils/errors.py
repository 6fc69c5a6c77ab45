"""Redaction of storage credentials in error messages.

Errors from the storage SDKs end up in Config and ClusterOperator conditions,
which any cluster reader can see.
"""

import re

# (pattern, replacement) pairs applied in order.
_REDACTIONS = [
    # AWS key ids and secrets
    (re.compile(r"\b(AKIA|ASIA)[A-Z0-9]{16}\b"), "[REDACTED]"),
    (re.compile(r"(secret[_\s]?access[_\s]?key[=:\s]+)[A-Za-z0-9/+=]{40}", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(session[_\s]?token[=:\s]+)[A-Za-z0-9/+=]+", re.IGNORECASE), r"\1[REDACTED]"),
    # Azure connection strings and SAS signatures
    (re.compile(r"(AccountKey=)[^;\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"([?&]sig=)[^&\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    # GCS service account keys
    (re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----", re.DOTALL), "[REDACTED]"),
]

# Field names whose values are redacted completely, with or without underscores.
SENSITIVE_FIELDS = ("access_?key", "secret_?key", "account_?key", "password", "token", "key_?file", "private_?key")

_FIELD_PATTERN = re.compile(
    rf"(\"?(?:{'|'.join(SENSITIVE_FIELDS)})\"?)([=:\s]+)(\"[^\"]*\"|[^\s,;\)]+)",
    re.IGNORECASE,
)


def sanitize_error_message(message: str) -> str:
    """Return message with credentials replaced by ``[REDACTED]``."""
    for pattern, replacement in _REDACTIONS:
        message = pattern.sub(replacement, message)
    return _FIELD_PATTERN.sub(r"\1\2[REDACTED]", message)


def sanitize_exception(error: BaseException) -> str:
    return sanitize_error_message(str(error))
