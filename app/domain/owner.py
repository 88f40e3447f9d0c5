# app/domain/owner.py
from dataclasses import dataclass
from typing import Union

from app.domain.errors import ValidationError


@dataclass(frozen=True)
class UserOwner:
    id: int


@dataclass(frozen=True)
class SessionOwner:
    id: str


# koszyk nalezy albo do usera albo do sesji goscia, nigdy do obu
Owner = Union[UserOwner, SessionOwner]


def owner_from_ids(user_id: int | None, session_id: str | None) -> Owner:
    if user_id is not None and session_id:
        raise ValidationError("Provide either user_id or session_id, not both")
    if user_id is not None:
        return UserOwner(user_id)
    if session_id:
        return SessionOwner(session_id)
    raise ValidationError("Either user_id or session_id is required")
