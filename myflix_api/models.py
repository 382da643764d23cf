"""Data models using Pydantic."""

from datetime import date, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .types import MovieRecord, UserRecord


class Genre(BaseModel):
    """Movie genre."""

    name: str
    description: str = ""


class Director(BaseModel):
    """Movie director."""

    name: str
    bio: str = ""
    birth: str | None = None
    death: str | None = None


class Movie(BaseModel):
    """Catalog entry returned by the movie endpoints."""

    id: str
    title: str
    description: str = ""
    genre: Genre
    director: Director
    image_path: str | None = None
    featured: bool = False

    @classmethod
    def from_record(cls, record: MovieRecord) -> "Movie":
        return cls.model_validate(record)


class User(BaseModel):
    """Public view of a user. The password hash is never part of it."""

    id: str
    username: str
    email: str
    birthday: date | None = None
    favorite_movies: list[str] = Field(default_factory=list)

    @classmethod
    def from_record(cls, record: UserRecord) -> "User":
        return cls(
            id=record["id"],
            username=record["username"],
            email=record.get("email", ""),
            birthday=record.get("birthday"),
            favorite_movies=sorted(record.get("favorite_movies") or []),
        )


class UserPayload(BaseModel):
    """Body of registration and profile-update requests.

    Fields are untyped and optional so that the validation pipeline, not
    the parser, reports missing or mistyped fields together with every
    other rule violation.
    """

    model_config = ConfigDict(populate_by_name=True)

    username: Any = Field(None, validation_alias=AliasChoices("username", "userName", "Username"))
    password: Any = Field(None, validation_alias=AliasChoices("password", "Password"))
    email: Any = Field(None, validation_alias=AliasChoices("email", "Email"))
    birthday: Any = Field(None, validation_alias=AliasChoices("birthday", "Birthday"))

    def provided(self) -> dict[str, Any]:
        """Fields the client actually sent."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class LoginRequest(BaseModel):
    """Credentials for the login endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(..., min_length=1, validation_alias=AliasChoices("username", "userName", "Username"))
    password: str = Field(..., min_length=1, validation_alias=AliasChoices("password", "Password"))


class LoginResponse(BaseModel):
    """Issued bearer credential together with the user it belongs to."""

    user: User
    token: str
    token_type: str = "bearer"


class Principal(BaseModel):
    """Authenticated identity for the duration of one request."""

    username: str
    expires_at: datetime | None = None
