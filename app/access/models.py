"""
Viewer identity as the ledger sees it: who is asking and with which role.
"""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class Role(str, Enum):
    """SUPPORT is the privileged role; everyone else signed in is a MEMBER."""

    SUPPORT = "SUPPORT"
    MEMBER = "MEMBER"


class ViewerContext(BaseModel):
    external_id: str  # Discord user ID
    username: str = ""
    role: Role = Role.MEMBER

    model_config = {"frozen": True}

    @property
    def is_privileged(self) -> bool:
        return self.role == Role.SUPPORT

    @property
    def label(self) -> str:
        """Actor label written to the sheet and shown in notifications."""
        return self.username or self.external_id
