"""Storage protocol definitions using typing.Protocol."""

from typing import Any, Protocol

from ..types import DirectorRecord, GenreRecord, MovieRecord, Result, UserRecord


class Repository(Protocol):
    """Repository protocol for movie and user persistence.

    Read operations return ``None`` for absent records and raise on storage
    failure. Update primitives never raise for storage failure: they return a
    ``Result`` whose value is ``None`` when no user matched.
    """

    async def list_movies(self) -> list[MovieRecord]:
        """Get every movie in the catalog."""
        ...

    async def get_movie(self, movie_id: str) -> MovieRecord | None:
        """Get a movie by its identity."""
        ...

    async def get_movie_by_title(self, title: str) -> MovieRecord | None:
        """Get a movie by its title."""
        ...

    async def find_genre(self, name: str) -> GenreRecord | None:
        """Get the genre of the first movie filed under ``name``."""
        ...

    async def find_director(self, name: str) -> DirectorRecord | None:
        """Get the director record of the first movie directed by ``name``."""
        ...

    async def add_movie(self, movie: MovieRecord) -> MovieRecord:
        """Insert a catalog entry, assigning an id if it has none."""
        ...

    async def list_users(self) -> list[UserRecord]:
        """Get every user."""
        ...

    async def get_user(self, username: str) -> UserRecord | None:
        """Get a user by username."""
        ...

    async def create_user(self, user: UserRecord) -> UserRecord:
        """Insert a user. Raises ``ConflictError`` if the username is taken."""
        ...

    async def update_user(self, username: str, changes: dict[str, Any]) -> Result[UserRecord]:
        """Set the given fields on a user and return the updated record."""
        ...

    async def delete_user(self, username: str) -> Result[UserRecord]:
        """Remove a user and return the removed record."""
        ...

    async def add_favorite(self, username: str, movie_id: str) -> Result[UserRecord]:
        """Atomically add ``movie_id`` to the user's favorites set."""
        ...

    async def remove_favorite(self, username: str, movie_id: str) -> Result[UserRecord]:
        """Atomically remove ``movie_id`` from the user's favorites set."""
        ...

    async def health_check(self) -> bool:
        """Check if repository is healthy."""
        ...

    async def startup(self) -> None:
        """Initialize repository on startup."""
        ...

    async def shutdown(self) -> None:
        """Cleanup repository on shutdown."""
        ...
