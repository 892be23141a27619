"""API helper utilities."""
from api.helpers.conflict_check import check_optimistic_lock, conflict_detail

__all__ = [
    "check_optimistic_lock",
    "conflict_detail",
]
