"""
Input validators — framework-agnostic, pure functions.

All validators are stateless; policy data (e.g. the allowed email domains)
is passed in by the caller so the service layer owns configuration.
"""

from __future__ import annotations

import re
from typing import Sequence

import validators as _validators


def normalize_email(email: str) -> str:
    """Lowercase and trim an email address. Emails are stored this way."""
    return email.strip().lower()


def validate_email(email: str) -> bool:
    """Return True if *email* is a syntactically valid address."""
    if not email:
        return False
    return bool(_validators.email(email))


def is_allowed_email_domain(email: str, allowed_domains: Sequence[str]) -> bool:
    """Return True if *email* belongs to one of *allowed_domains*.

    An empty *allowed_domains* allows every domain. Comparison is
    case-insensitive.
    """
    if not allowed_domains:
        return True
    domain = email.rsplit("@", 1)[-1].lower()
    return domain in {d.strip().lower() for d in allowed_domains}


def validate_password_strength(password: str) -> bool:
    """Validate an account password.

    Rules:
    - At least 8 characters
    - Contains at least one uppercase letter
    - Contains at least one lowercase letter
    - Contains at least one digit

    Returns:
        True if the password meets all requirements.
    """
    if len(password) < 8:
        return False
    if not re.search(r"[A-Z]", password):
        return False
    if not re.search(r"[a-z]", password):
        return False
    if not re.search(r"\d", password):
        return False
    return True
