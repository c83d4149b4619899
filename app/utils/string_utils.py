import re
from typing import Any, Optional

_WHITESPACE = re.compile(r"\s+")


def clean_text(value: Any) -> Optional[str]:
    """Strip a cell or field value; blank becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Emails are compared and stored trimmed and lower-cased."""
    text = clean_text(email)
    return text.lower() if text else None


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """Keep digits and a leading plus sign only."""
    text = clean_text(phone)
    if not text:
        return None
    digits = re.sub(r"[^\d+]", "", text)
    return digits or None


def normalize_header(header: Any) -> str:
    """'Full Name ' -> 'full_name'"""
    text = clean_text(header) or ""
    return _WHITESPACE.sub("_", text.lower()).replace("-", "_")
