"""
Security Utilities
==================

Input sanitization and credential redaction.
"""

import re
import logging

logger = logging.getLogger(__name__)


def sanitize_prompt(prompt: str, max_length: int = 1500) -> str:
    """
    Sanitize a prompt string before it is sent upstream.

    Args:
        prompt: Scene prompt
        max_length: Maximum allowed length

    Returns:
        Sanitized prompt string
    """
    if not prompt:
        return ""

    # Remove control characters
    sanitized = "".join(char for char in prompt if char.isprintable() or char in "\n\t")

    # Collapse runs of whitespace left over from templating
    sanitized = re.sub(r"[ \t]{2,}", " ", sanitized)

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length]
        logger.warning(f"Prompt truncated from {len(prompt)} to {max_length} characters")

    return sanitized.strip()


def redact_api_key(text: str) -> str:
    """
    Redact API keys and sensitive tokens from text.

    Args:
        text: Text that might contain API keys

    Returns:
        Text with API keys redacted
    """
    if not text:
        return text

    patterns = [
        # Authorization header values
        (r"(Bearer|Token)\s+[A-Za-z0-9_\-\.]+", r"\1 ***REDACTED***"),
        # Vidu keys
        (r"vda_[A-Za-z0-9_]+", "vda_***REDACTED***"),
        # Header style keys
        (r"(x-api-key|groupid)['\"]?\s*[:=]\s*['\"]?[A-Za-z0-9_\-]+", r"\1: ***REDACTED***"),
        (r"api[_-]?key['\"]?\s*[:=]\s*['\"]?[A-Za-z0-9_\-]+", "api_key: ***REDACTED***"),
        # Environment variable patterns
        (
            r"(VIDU_API_KEY|MINIMAX_API_KEY|MINIMAX_GROUP_ID|SHOTSTACK_API_KEY)=[^\s]+",
            r"\1=***REDACTED***",
        ),
    ]

    result = text
    for pattern, replacement in patterns:
        result = re.sub(pattern, replacement, result, flags=re.IGNORECASE)

    return result


def validate_api_key_format(api_key: str, prefix: str = "vda_") -> bool:
    """
    Check that a key looks like a real provider key.

    Only catches obvious mistakes such as placeholders and stray spaces;
    the server remains the authority.
    """
    if not api_key or " " in api_key:
        return False
    if api_key.upper().startswith("YOUR_"):
        return False
    if prefix and not api_key.startswith(prefix):
        logger.debug(f"API key does not start with expected prefix {prefix!r}")
    return True
