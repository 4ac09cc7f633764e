"""
Room and participant records returned by the room service.

Field names are snake_case in Python and camelCase on the wire, matching the
attribute names stored in the table.
"""
from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_VALID_SIZES = ["1", "2", "3", "5", "8", "13", "20", "?", "∞"]


def join_sizes(sizes: List[str]) -> str:
    """Stored form of ``validSizes``: one space-delimited string."""
    return " ".join(sizes)


def split_sizes(stored: str) -> List[str]:
    return stored.split() if stored else []


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Participant(CamelModel):
    user_key: str = Field(exclude=True, description="Storage handle; only the owner should know it")
    user_id: str = ""
    username: str = ""
    vote: str = ""
    created_on: str = ""
    updated_on: str = ""


class Room(CamelModel):
    room_id: str
    valid_sizes: List[str] = Field(default_factory=lambda: list(DEFAULT_VALID_SIZES))
    is_revealed: bool = False
    created_on: str = ""
    updated_on: str = ""
    participants: List[Participant] = Field(default_factory=list)

    def participant(self, user_key: str) -> Participant:
        for participant in self.participants:
            if participant.user_key == user_key:
                return participant
        raise KeyError(user_key)
