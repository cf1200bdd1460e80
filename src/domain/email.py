"""
Email helpers - domain extraction and normalization.

Pure functions, no I/O. The domain of an email is the organization's
natural key, so an email that does not split cleanly yields the empty
string and callers must check for it before creating anything.
"""

EMPTY_DOMAIN = ""


def extract_domain(email: str) -> str:
    """
    Return the part of ``email`` after its single ``@``.

    Returns EMPTY_DOMAIN when the address has zero or several ``@``
    separators, or nothing after the separator.
    """
    if email.count("@") != 1:
        return EMPTY_DOMAIN
    return email.split("@", 1)[1]


def normalize_email(email: str) -> str:
    """Strip whitespace and lowercase for storage and lookup."""
    return email.strip().lower()
