"""Terminal-safe output and GitHub Actions annotations.

Annotations (`::warning::msg`) are how warnings reach the Actions UI; outside
Actions they are still readable plain lines. Unicode icons fall back to ASCII
on terminals that cannot encode them.
"""
import locale
import sys

# Unicode to ASCII icon mapping for non-UTF-8 terminals
ICON_MAP = {
    '✓': '[OK]',
    '✔': '[OK]',
    '✗': '[FAIL]',
    '⚠': '[WARN]',
    '→': '->',
    '…': '...',
    '•': '*',
}

ANNOTATION_LEVELS = {'debug', 'notice', 'warning', 'error'}


def detect_terminal_encoding() -> str:
    """Detect the terminal's encoding capability.

    Returns:
        str: Terminal encoding ('utf-8', 'cp1252', 'ascii', etc.)
    """
    if hasattr(sys.stdout, 'encoding') and sys.stdout.encoding:
        return sys.stdout.encoding.lower()

    try:
        return locale.getpreferredencoding().lower()
    except Exception:
        return 'ascii'


def is_utf8_capable() -> bool:
    """Check if the terminal can handle UTF-8 Unicode characters."""
    return detect_terminal_encoding().replace('_', '-') in ('utf-8', 'utf8')


def sanitize_for_terminal(text: str) -> str:
    """Replace Unicode icons with ASCII equivalents if terminal doesn't support UTF-8."""
    if is_utf8_capable():
        return text

    sanitized = text
    for unicode_char, ascii_replacement in ICON_MAP.items():
        sanitized = sanitized.replace(unicode_char, ascii_replacement)
    return sanitized


def escape_annotation(message: str) -> str:
    """Escape a message for a workflow command (`%`, CR and LF are special)."""
    return message.replace('%', '%25').replace('\r', '%0D').replace('\n', '%0A')


def format_annotation(level: str, message: str) -> str:
    """Format a GitHub Actions workflow annotation line.

    Raises:
        ValueError: If level is not a known annotation level
    """
    if level not in ANNOTATION_LEVELS:
        raise ValueError(f"Unknown annotation level: {level}")
    return f"::{level}::{escape_annotation(message)}"
