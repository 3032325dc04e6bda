"""
Access filter: who may see and change which ledger records.
Decision only; routes apply it after the cache read and before serialization.
"""
from app.access.filter import can_view, filter_for_viewer, require_privileged
from app.access.models import Role, ViewerContext

__all__ = [
    "Role",
    "ViewerContext",
    "can_view",
    "filter_for_viewer",
    "require_privileged",
]
