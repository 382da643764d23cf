"""Storage module with factory for creating repository instances."""

from collections.abc import Iterable
from urllib.parse import urlparse

from loguru import logger

from ..config import settings
from ..types import MovieRecord
from .dynamodb import DynamoDBRepository
from .memory import InMemoryRepository
from .protocols import Repository
from .sql import SQLRepository


def create_repository(database_url: str | None = None) -> Repository:
    """Create repository instance based on database URL.

    Args:
        database_url: Database URL. Uses settings if not provided.

    Returns:
        Repository instance.
    """
    url = database_url or settings.effective_database_url
    parsed = urlparse(url)

    if parsed.scheme == "dynamodb":
        logger.info("Creating DynamoDB repository")
        return DynamoDBRepository(url)
    if parsed.scheme == "memory":
        logger.info("Creating in-memory repository")
        return InMemoryRepository()
    logger.info("Creating SQL repository")
    return SQLRepository(url)


async def seed_movies(repository: Repository, movies: Iterable[MovieRecord]) -> int:
    """Load catalog entries whose title is not present yet.

    Returns:
        Number of movies inserted.
    """
    inserted = 0
    for movie in movies:
        if await repository.get_movie_by_title(movie["title"]) is not None:
            continue
        await repository.add_movie(movie)
        inserted += 1
    logger.info(f"Seeded {inserted} movies")
    return inserted


__all__ = [
    "DynamoDBRepository",
    "InMemoryRepository",
    "Repository",
    "SQLRepository",
    "create_repository",
    "seed_movies",
]
