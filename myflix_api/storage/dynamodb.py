"""DynamoDB repository implementation."""

import asyncio
import uuid
from functools import partial
from typing import Any
from urllib.parse import urlparse

from loguru import logger

from ..exceptions import ConflictError, RepositoryError
from ..retry import with_storage_retry
from ..types import DirectorRecord, GenreRecord, MovieRecord, Result, UserRecord

MOVIE_PREFIX = "movie#"
USER_PREFIX = "user#"
_USER_FIELDS = ("username", "password_hash", "email", "birthday")


def _condition_failed(exc: BaseException) -> bool:
    error = getattr(exc, "response", {}).get("Error", {})
    return error.get("Code") == "ConditionalCheckFailedException"


def _cancellation_codes(exc: BaseException, count: int) -> list[str | None]:
    """Per-item failure codes of a cancelled transaction, in request order."""
    response = getattr(exc, "response", {})
    if response.get("Error", {}).get("Code") != "TransactionCanceledException":
        return [None] * count
    codes = [reason.get("Code") for reason in response.get("CancellationReasons", [])]
    return (codes + [None] * count)[:count]


class DynamoDBRepository:
    """DynamoDB repository implementation.

    Movies and users share one table. Favorites are a string set on the user
    item so that ``ADD``/``DELETE`` update expressions modify them atomically.
    """

    def __init__(self, database_url: str):
        """Initialize DynamoDB repository.

        Args:
            database_url: DynamoDB URL in format: dynamodb://table_name?region=us-east-1
        """
        parsed = urlparse(database_url)
        self.table_name = parsed.netloc or parsed.path.lstrip("/")
        self.region = None

        if parsed.query:
            for param in parsed.query.split("&"):
                if param.startswith("region="):
                    self.region = param.split("=")[1]

        self.table = None

    async def startup(self) -> None:
        """Initialize DynamoDB connection."""
        try:
            import boto3

            resource = boto3.resource("dynamodb", region_name=self.region)
            self.table = resource.Table(self.table_name)

            logger.info(f"Connected to DynamoDB table: {self.table_name} in {self.region}")
        except ImportError:
            logger.error("boto3 not available. Install with: pip install boto3")
            raise

    async def shutdown(self) -> None:
        """No cleanup needed for DynamoDB."""
        pass

    async def _run(self, method: str, **kwargs: Any) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(getattr(self.table, method), **kwargs))

    async def _scan(self, prefix: str, **conditions: Any) -> list[dict[str, Any]]:
        from boto3.dynamodb.conditions import Attr

        expression = Attr("pk").begins_with(prefix)
        for name, value in conditions.items():
            expression = expression & Attr(name).eq(value)

        items: list[dict[str, Any]] = []
        kwargs: dict[str, Any] = {"FilterExpression": expression}
        while True:
            response = await self._run("scan", **kwargs)
            items.extend(response.get("Items", []))
            if "LastEvaluatedKey" not in response:
                return items
            kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]

    # Movies

    @with_storage_retry("dynamodb")
    async def list_movies(self) -> list[MovieRecord]:
        items = await self._scan(MOVIE_PREFIX)
        return sorted((self._movie_from_item(i) for i in items), key=lambda m: m["title"])

    @with_storage_retry("dynamodb")
    async def get_movie(self, movie_id: str) -> MovieRecord | None:
        response = await self._run("get_item", Key={"pk": f"{MOVIE_PREFIX}{movie_id}", "sk": "data"})
        item = response.get("Item")
        return self._movie_from_item(item) if item else None

    @with_storage_retry("dynamodb")
    async def get_movie_by_title(self, title: str) -> MovieRecord | None:
        items = await self._scan(MOVIE_PREFIX, title=title)
        return self._movie_from_item(items[0]) if items else None

    @with_storage_retry("dynamodb")
    async def find_genre(self, name: str) -> GenreRecord | None:
        items = await self._scan(MOVIE_PREFIX, **{"genre.name": name})
        return self._movie_from_item(items[0])["genre"] if items else None

    @with_storage_retry("dynamodb")
    async def find_director(self, name: str) -> DirectorRecord | None:
        items = await self._scan(MOVIE_PREFIX, **{"director.name": name})
        return self._movie_from_item(items[0])["director"] if items else None

    @with_storage_retry("dynamodb")
    async def add_movie(self, movie: MovieRecord) -> MovieRecord:
        record: MovieRecord = {**movie, "id": movie.get("id") or uuid.uuid4().hex}
        item = {"pk": f"{MOVIE_PREFIX}{record['id']}", "sk": "data", **record}
        await self._run("put_item", Item=item)
        return record

    # Users

    @with_storage_retry("dynamodb")
    async def list_users(self) -> list[UserRecord]:
        items = await self._scan(USER_PREFIX)
        return sorted((self._user_from_item(i) for i in items), key=lambda u: u["username"])

    @with_storage_retry("dynamodb")
    async def get_user(self, username: str) -> UserRecord | None:
        response = await self._run("get_item", Key=self._user_key(username))
        item = response.get("Item")
        return self._user_from_item(item) if item else None

    @with_storage_retry("dynamodb")
    async def create_user(self, user: UserRecord) -> UserRecord:
        record: UserRecord = {
            **{f: user.get(f) for f in _USER_FIELDS},
            "id": user.get("id") or uuid.uuid4().hex,
        }
        try:
            await self._run(
                "put_item",
                Item={**self._user_key(record["username"]), **record},
                ConditionExpression="attribute_not_exists(pk)",
            )
        except Exception as e:
            if _condition_failed(e):
                raise ConflictError(f"{record['username']} already exists") from e
            raise
        return {**record, "favorite_movies": []}

    async def update_user(self, username: str, changes: dict[str, Any]) -> Result[UserRecord]:
        try:
            return Result.success(await self._update_user(username, changes))
        except RepositoryError as e:
            return Result.failure(str(e))

    async def delete_user(self, username: str) -> Result[UserRecord]:
        try:
            return Result.success(await self._delete_user(username))
        except RepositoryError as e:
            return Result.failure(str(e))

    async def add_favorite(self, username: str, movie_id: str) -> Result[UserRecord]:
        try:
            return Result.success(await self._update_favorites("ADD", username, movie_id))
        except RepositoryError as e:
            return Result.failure(str(e))

    async def remove_favorite(self, username: str, movie_id: str) -> Result[UserRecord]:
        try:
            return Result.success(await self._update_favorites("DELETE", username, movie_id))
        except RepositoryError as e:
            return Result.failure(str(e))

    async def health_check(self) -> bool:
        """Check if DynamoDB is accessible.

        Returns:
            True if DynamoDB is healthy, False otherwise.
        """
        try:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, lambda: self.table.table_status)
            return True
        except (AttributeError, RuntimeError) as e:
            logger.warning(f"DynamoDB health check failed: {e}")
            return False

    @with_storage_retry("dynamodb")
    async def _update_favorites(self, action: str, username: str, movie_id: str) -> UserRecord | None:
        try:
            response = await self._run(
                "update_item",
                Key=self._user_key(username),
                UpdateExpression=f"{action} favorite_movies :movie",
                ConditionExpression="attribute_exists(pk)",
                ExpressionAttributeValues={":movie": {movie_id}},
                ReturnValues="ALL_NEW",
            )
        except Exception as e:
            if _condition_failed(e):
                return None
            raise
        return self._user_from_item(response["Attributes"])

    @with_storage_retry("dynamodb")
    async def _update_user(self, username: str, changes: dict[str, Any]) -> UserRecord | None:
        values = {k: v for k, v in changes.items() if k in _USER_FIELDS}
        new_username = values.get("username", username)
        if new_username != username:
            return await self._rename_user(username, new_username, values)
        if not values:
            response = await self._run("get_item", Key=self._user_key(username))
            item = response.get("Item")
            return self._user_from_item(item) if item else None

        names = {f"#{k}": k for k in values}
        try:
            response = await self._run(
                "update_item",
                Key=self._user_key(username),
                UpdateExpression="SET " + ", ".join(f"#{k} = :{k}" for k in values),
                ConditionExpression="attribute_exists(pk)",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues={f":{k}": v for k, v in values.items()},
                ReturnValues="ALL_NEW",
            )
        except Exception as e:
            if _condition_failed(e):
                return None
            raise
        return self._user_from_item(response["Attributes"])

    async def _rename_user(
        self, username: str, new_username: str, values: dict[str, Any]
    ) -> UserRecord | None:
        # The username is the partition key: write the new item and drop the old one together
        from boto3.dynamodb.types import TypeSerializer

        response = await self._run("get_item", Key=self._user_key(username))
        item = response.get("Item")
        if item is None:
            return None
        renamed = {**item, **values, **self._user_key(new_username)}

        serializer = TypeSerializer()
        old_key = {k: serializer.serialize(v) for k, v in self._user_key(username).items()}
        transaction = [
            {
                "Put": {
                    "TableName": self.table_name,
                    "Item": {k: serializer.serialize(v) for k, v in renamed.items()},
                    "ConditionExpression": "attribute_not_exists(pk)",
                }
            },
            {
                "Delete": {
                    "TableName": self.table_name,
                    "Key": old_key,
                    "ConditionExpression": "attribute_exists(pk)",
                }
            },
        ]
        loop = asyncio.get_running_loop()
        client = self.table.meta.client
        try:
            await loop.run_in_executor(None, partial(client.transact_write_items, TransactItems=transaction))
        except Exception as e:
            put_failed, delete_failed = _cancellation_codes(e, 2)
            if put_failed == "ConditionalCheckFailed":
                raise ConflictError(f"{new_username} already exists") from e
            if delete_failed == "ConditionalCheckFailed":
                return None
            raise
        return self._user_from_item(renamed)

    @with_storage_retry("dynamodb")
    async def _delete_user(self, username: str) -> UserRecord | None:
        response = await self._run("delete_item", Key=self._user_key(username), ReturnValues="ALL_OLD")
        item = response.get("Attributes")
        return self._user_from_item(item) if item else None

    @staticmethod
    def _user_key(username: str) -> dict[str, str]:
        return {"pk": f"{USER_PREFIX}{username}", "sk": "profile"}

    @staticmethod
    def _user_from_item(item: dict[str, Any]) -> UserRecord:
        return {
            "id": item["id"],
            "username": item["username"],
            "password_hash": item["password_hash"],
            "email": item.get("email", ""),
            "birthday": item.get("birthday"),
            # DynamoDB drops a string set once its last element is deleted
            "favorite_movies": sorted(item.get("favorite_movies") or []),
        }

    @staticmethod
    def _movie_from_item(item: dict[str, Any]) -> MovieRecord:
        record = {k: v for k, v in item.items() if k not in ("pk", "sk")}
        record.setdefault("description", "")
        record.setdefault("featured", False)
        return record  # type: ignore[return-value]
