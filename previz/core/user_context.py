"""
Explicit caller identity passed to every component that needs it.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class UserContext:
    """The current user, injected instead of read from ambient session state."""
    user_id: str
    email: Optional[str] = None
    display_name: Optional[str] = None

    def owns(self, owner_id: Optional[str]) -> bool:
        return owner_id is not None and owner_id == self.user_id
