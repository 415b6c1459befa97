"""
user.py
User record kept in the brain's directory.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(eq=False)
class User:
    """A chat user known to the bot.

    `id` is the stable identity. `name` and `room` are first-class because the
    brain searches and reconciles on them; everything else an adapter attaches
    lives in `extra`.
    """
    id: str
    name: Optional[str] = None
    room: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.id = str(self.id)

    @classmethod
    def from_dict(cls, user_id: str, data: Optional[Dict[str, Any]] = None) -> "User":
        user = cls(id=user_id)
        user.merge(data or {})
        return user

    def merge(self, attributes: Dict[str, Any]) -> None:
        """Copy attributes onto this record in place. The id is never changed."""
        for key, value in attributes.items():
            if key == "id":
                continue
            if key in ("name", "room"):
                setattr(self, key, value)
            else:
                self.extra[key] = value

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.extra)
        data["id"] = self.id
        if self.name is not None:
            data["name"] = self.name
        if self.room is not None:
            data["room"] = self.room
        return data
