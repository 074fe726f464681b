"""Log sanitization for error messages.

Azure SDK exceptions sometimes echo request details back to the caller. This
module redacts anything that looks like a secret before a message is printed
or logged.

Security Controls:
- Client secrets and passwords are fully redacted
- Bearer tokens are fully redacted
- Known secret values (e.g. the configured client secret) can be masked
  verbatim wherever they appear
"""

import re
from collections.abc import Iterable
from re import Pattern


class LogSanitizer:
    """Sanitize sensitive data from logs and error messages.

    All methods are class methods and can be called without instantiation.
    """

    REDACTED = "[REDACTED]"
    MASKED = "****"

    # Order matters: more specific patterns first
    SECRET_PATTERNS: dict[str, Pattern] = {
        "client_secret_assignment": re.compile(
            r'(client[_-]?secret["\']?\s*[:=]\s*["\']?)([^\s"\'&,\)]+)',
            re.IGNORECASE,
        ),
        "client_secret_env": re.compile(
            r"(AZURE_CLIENT_SECRET[\"']?\s*[:=]\s*[\"']?)([^\s\"'&,\)]+)",
            re.IGNORECASE,
        ),
        "password": re.compile(r'(password["\']?\s*[:=]\s*["\']?)([^\s"\'&,\)]+)', re.IGNORECASE),
        "authorization_bearer": re.compile(r"(Authorization:\s*Bearer\s+)([^\s]+)", re.IGNORECASE),
        "access_token": re.compile(
            r'(access[_-]?token["\']?\s*[:=]\s*["\']?)([^\s"\'&,\)]+)',
            re.IGNORECASE,
        ),
    }

    @classmethod
    def sanitize(cls, message: str, known_secrets: Iterable[str] = ()) -> str:
        """Sanitize message by redacting sensitive patterns.

        Args:
            message: The message to sanitize
            known_secrets: Literal secret values to mask wherever they appear

        Returns:
            Sanitized message with secrets replaced by [REDACTED] or ****

        Examples:
            >>> LogSanitizer.sanitize("client_secret=abc123")
            'client_secret=[REDACTED]'
            >>> LogSanitizer.sanitize("bad value s3cr3t", known_secrets=["s3cr3t"])
            'bad value ****'
        """
        if not isinstance(message, str):
            message = str(message)

        result = message
        for secret in known_secrets:
            if secret:
                result = result.replace(secret, cls.MASKED)

        for pattern in cls.SECRET_PATTERNS.values():
            result = pattern.sub(r"\1" + cls.REDACTED, result)

        return result

    @classmethod
    def sanitize_exception(cls, exc: BaseException) -> str:
        """Sanitize an exception's message.

        Args:
            exc: Exception to render

        Returns:
            Sanitized "<ExceptionType>: <message>" string
        """
        return f"{type(exc).__name__}: {cls.sanitize(str(exc))}"


__all__ = ["LogSanitizer"]
