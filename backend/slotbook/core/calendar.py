"""Calendar identity: which member's agenda an operation targets."""

from dataclasses import dataclass
from typing import Optional

DEFAULT_MEMBER_KEY = "_default"


@dataclass(frozen=True)
class MemberSelector:
    """Either a specific member or the location-level default calendar.
    
    Build with ``MemberSelector.specific(id)`` or
    ``MemberSelector.location_default()``; ``from_optional`` adapts the
    nullable id used on the wire.
    """
    
    member_id: Optional[str] = None
    
    @classmethod
    def specific(cls, member_id: str) -> "MemberSelector":
        if not member_id:
            raise ValueError("member_id is required for a specific member")
        return cls(member_id=member_id)
    
    @classmethod
    def location_default(cls) -> "MemberSelector":
        return cls(member_id=None)
    
    @classmethod
    def from_optional(cls, member_id: Optional[str]) -> "MemberSelector":
        return cls.specific(member_id) if member_id else cls.location_default()
    
    @property
    def is_location_default(self) -> bool:
        return self.member_id is None
    
    @property
    def key(self) -> str:
        return self.member_id or DEFAULT_MEMBER_KEY
    
    def __str__(self) -> str:
        return self.member_id or "location-default"


def calendar_key(location_id: str, member: MemberSelector) -> str:
    """Deterministic key for one agenda: ``{location_id}_{member_id|_default}``."""
    return f"{location_id}_{member.key}"
