"""Pipelines for contacts, referrals, relationship scoring and network analysis.

Each step is callable independently with an ``AsyncSession`` so the API,
batch scripts and tests share the same code paths.
"""


class NotFoundError(LookupError):
    """Raised when a referenced row does not exist."""
    pass
