"""Shared utilities: datetime and naming."""

from cti.shared.utils.datetime import ensure_utc, utc_now
from cti.shared.utils.naming import snake_case

__all__ = ["ensure_utc", "snake_case", "utc_now"]
