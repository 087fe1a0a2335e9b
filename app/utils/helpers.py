"""
Common utility functions and helpers.
"""
from typing import Any, Optional
import html
import re


def clean_field(value: Any) -> str:
    """
    Normalize a submitted form value.

    Args:
        value: Raw field value (may be None or non-string)

    Returns:
        Trimmed string, empty when the value is missing
    """
    if value is None:
        return ""
    return str(value).strip()


def escape_html(text: Any) -> str:
    """
    Escape untrusted text for inclusion in HTML markup.

    Args:
        text: Text from the language model or the user

    Returns:
        Text with &, <, >, " and ' replaced by entities
    """
    return html.escape("" if text is None else str(text), quote=True)


def safe_filename(name: Optional[str], fallback: str) -> str:
    """
    Reduce a server-supplied filename to a bare, safe basename.

    Args:
        name: Filename suggested by the server
        fallback: Name to use when *name* is empty or unusable

    Returns:
        A filename without directory components
    """
    if not name:
        return fallback
    # Drop any directory part, then anything outside a conservative set
    base = re.split(r"[\\/]", name)[-1]
    base = re.sub(r"[^\w.\-]", "_", base).lstrip(".")
    return base or fallback
