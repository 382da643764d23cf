"""Tests for repository adapters and the factory."""

from unittest.mock import MagicMock, patch

import pytest

from myflix_api.exceptions import ConflictError
from myflix_api.storage import (
    DynamoDBRepository,
    InMemoryRepository,
    SQLRepository,
    create_repository,
    seed_movies,
)


class TestCreateRepository:
    def test_memory_url(self):
        assert isinstance(create_repository("memory://"), InMemoryRepository)

    def test_sqlite_url(self):
        assert isinstance(create_repository("sqlite+aiosqlite:///./test.db"), SQLRepository)

    def test_dynamodb_url(self):
        repo = create_repository("dynamodb://myflix-table?region=eu-west-1")

        assert isinstance(repo, DynamoDBRepository)
        assert repo.table_name == "myflix-table"
        assert repo.region == "eu-west-1"


class TestInMemoryRepository:
    @pytest.mark.asyncio
    async def test_seed_skips_existing_titles(self, repository, sample_movies):
        assert await seed_movies(repository, sample_movies) == 0
        assert len(await repository.list_movies()) == 2

    @pytest.mark.asyncio
    async def test_create_user_conflict(self, repository):
        user = {"username": "MovieFan1", "password_hash": "h", "email": "a@b.com", "birthday": None}
        await repository.create_user(user)

        with pytest.raises(ConflictError):
            await repository.create_user(user)

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, repository):
        await repository.create_user(
            {"username": "MovieFan1", "password_hash": "h", "email": "a@b.com", "birthday": None}
        )

        user = await repository.get_user("MovieFan1")
        user["favorite_movies"].append("abc123")

        assert (await repository.get_user("MovieFan1"))["favorite_movies"] == []

    @pytest.mark.asyncio
    async def test_update_primitives_report_missing_user(self, repository):
        for result in (
            await repository.update_user("Nobody123", {"email": "x@b.com"}),
            await repository.delete_user("Nobody123"),
            await repository.add_favorite("Nobody123", "abc123"),
            await repository.remove_favorite("Nobody123", "abc123"),
        ):
            assert result.ok
            assert result.value is None


def _client_error(code: str) -> Exception:
    error = Exception(code)
    error.response = {"Error": {"Code": code}}  # type: ignore[attr-defined]
    return error


class TestDynamoDBRepository:
    """DynamoDB adapter against a mocked boto3 table."""

    @pytest.fixture
    def table(self) -> MagicMock:
        return MagicMock()

    @pytest.fixture
    def repo(self, table) -> DynamoDBRepository:
        repo = DynamoDBRepository("dynamodb://myflix?region=us-east-1")
        repo.table = table
        return repo

    @pytest.mark.asyncio
    async def test_add_favorite_uses_atomic_set_add(self, repo, table):
        table.update_item.return_value = {
            "Attributes": {
                "id": "u1",
                "username": "MovieFan1",
                "password_hash": "h",
                "email": "a@b.com",
                "favorite_movies": {"abc123"},
            }
        }

        result = await repo.add_favorite("MovieFan1", "abc123")

        assert result.ok
        assert result.value["favorite_movies"] == ["abc123"]
        kwargs = table.update_item.call_args.kwargs
        assert kwargs["Key"] == {"pk": "user#MovieFan1", "sk": "profile"}
        assert kwargs["UpdateExpression"] == "ADD favorite_movies :movie"
        assert kwargs["ExpressionAttributeValues"] == {":movie": {"abc123"}}
        assert kwargs["ConditionExpression"] == "attribute_exists(pk)"

    @pytest.mark.asyncio
    async def test_remove_last_favorite(self, repo, table):
        table.update_item.return_value = {
            "Attributes": {"id": "u1", "username": "MovieFan1", "password_hash": "h", "email": "a@b.com"}
        }

        result = await repo.remove_favorite("MovieFan1", "abc123")

        assert result.value["favorite_movies"] == []
        assert table.update_item.call_args.kwargs["UpdateExpression"] == "DELETE favorite_movies :movie"

    @pytest.mark.asyncio
    async def test_favorite_for_missing_user(self, repo, table):
        table.update_item.side_effect = _client_error("ConditionalCheckFailedException")

        result = await repo.add_favorite("Nobody123", "abc123")

        assert result.ok
        assert result.value is None

    @pytest.mark.asyncio
    async def test_storage_failure_is_a_failed_result(self, repo, table):
        table.update_item.side_effect = _client_error("ValidationException")

        result = await repo.add_favorite("MovieFan1", "abc123")

        assert not result.ok
        assert "ValidationException" in result.error

    @pytest.mark.asyncio
    async def test_create_user_conflict(self, repo, table):
        table.put_item.side_effect = _client_error("ConditionalCheckFailedException")

        with pytest.raises(ConflictError):
            await repo.create_user(
                {"username": "MovieFan1", "password_hash": "h", "email": "a@b.com", "birthday": None}
            )

    @pytest.mark.asyncio
    async def test_delete_user_returns_old_item(self, repo, table):
        table.delete_item.return_value = {
            "Attributes": {"id": "u1", "username": "MovieFan1", "password_hash": "h", "email": "a@b.com"}
        }

        result = await repo.delete_user("MovieFan1")

        assert result.value["username"] == "MovieFan1"

    @pytest.mark.asyncio
    async def test_scan_follows_pagination(self, repo, table):
        table.scan.side_effect = [
            {"Items": [{"pk": "movie#1", "sk": "data", "id": "1", "title": "B"}], "LastEvaluatedKey": {"pk": "movie#1"}},
            {"Items": [{"pk": "movie#2", "sk": "data", "id": "2", "title": "A"}]},
        ]

        movies = await repo.list_movies()

        assert [m["title"] for m in movies] == ["A", "B"]
        assert "pk" not in movies[0]
        assert table.scan.call_count == 2

    @pytest.mark.asyncio
    async def test_startup_creates_table_resource(self, repo):
        with patch("boto3.resource") as mock_resource:
            await repo.startup()

        mock_resource.assert_called_once_with("dynamodb", region_name="us-east-1")
        assert repo.table is mock_resource.return_value.Table.return_value

    @pytest.mark.asyncio
    async def test_rename_writes_and_deletes_in_one_transaction(self, repo, table):
        table.get_item.return_value = {
            "Item": {
                "pk": "user#MovieFan1",
                "sk": "profile",
                "id": "u1",
                "username": "MovieFan1",
                "password_hash": "h",
                "email": "a@b.com",
                "favorite_movies": {"abc123"},
            }
        }
        client = table.meta.client

        result = await repo.update_user("MovieFan1", {"username": "MovieFan2"})

        assert result.value["username"] == "MovieFan2"
        assert result.value["favorite_movies"] == ["abc123"]
        table.put_item.assert_not_called()
        table.delete_item.assert_not_called()
        put, delete = client.transact_write_items.call_args.kwargs["TransactItems"]
        assert put["Put"]["Item"]["pk"] == {"S": "user#MovieFan2"}
        assert put["Put"]["Item"]["favorite_movies"] == {"SS": ["abc123"]}
        assert put["Put"]["ConditionExpression"] == "attribute_not_exists(pk)"
        assert delete["Delete"]["Key"] == {"pk": {"S": "user#MovieFan1"}, "sk": {"S": "profile"}}

    @pytest.mark.asyncio
    async def test_rename_onto_taken_username_conflicts(self, repo, table):
        table.get_item.return_value = {
            "Item": {"pk": "user#MovieFan1", "sk": "profile", "id": "u1", "username": "MovieFan1", "password_hash": "h"}
        }
        error = _client_error("TransactionCanceledException")
        error.response["CancellationReasons"] = [{"Code": "ConditionalCheckFailed"}, {"Code": "None"}]  # type: ignore[attr-defined]
        table.meta.client.transact_write_items.side_effect = error

        with pytest.raises(ConflictError):
            await repo.update_user("MovieFan1", {"username": "MovieFan2"})

    @pytest.mark.asyncio
    async def test_rename_of_concurrently_deleted_user(self, repo, table):
        table.get_item.return_value = {
            "Item": {"pk": "user#MovieFan1", "sk": "profile", "id": "u1", "username": "MovieFan1", "password_hash": "h"}
        }
        error = _client_error("TransactionCanceledException")
        error.response["CancellationReasons"] = [{"Code": "None"}, {"Code": "ConditionalCheckFailed"}]  # type: ignore[attr-defined]
        table.meta.client.transact_write_items.side_effect = error

        result = await repo.update_user("MovieFan1", {"username": "MovieFan2"})

        assert result.ok
        assert result.value is None
