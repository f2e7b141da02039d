"""Nested summaries embedded in responses.

Contact fields on a UserSummary are only filled in for viewers entitled to
them; empty contact fields are omitted from the serialized payload.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_serializer

CONTACT_FIELDS = ("email", "phone")


class UserSummary(BaseModel):
    id: int
    first_name: str
    last_name: str
    role: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @model_serializer(mode="wrap")
    def _omit_hidden_contact(self, handler):
        data = handler(self)
        for key in CONTACT_FIELDS:
            if data.get(key) is None:
                data.pop(key, None)
        return data


class StudentSummary(BaseModel):
    id: int
    first_name: str
    last_name: str
    birth_date: Optional[date] = None
    parent: Optional[UserSummary] = None


class GroupSummary(BaseModel):
    id: int
    name: str
    color: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class MessageResponse(BaseModel):
    message: str
