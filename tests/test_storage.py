"""
Tests for the storage strategies and the lazy connection they share.

SQLAlchemyStorage runs against a real SQLite file. MongoStorage runs against
a mocked pymongo database, so no server is needed.
"""
import asyncio
import threading
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from shortlink_app.exceptions import ConflictError, DuplicateShortCodeError, StoreError
from shortlink_app.storage.connection import LazyConnection
from shortlink_app.storage.factory import StorageBackend, StorageFactory
from shortlink_app.storage.strategies import (
    MongoStorage,
    SQLAlchemyStorage,
    int_to_object_id,
    object_id_to_int
)


def now():
    return datetime.now(timezone.utc)


class TestSQLAlchemyStorage:
    """Test the relational backend"""

    def test_create_and_get_url(self, storage):
        """Test a created URL can be read back"""
        created = asyncio.run(storage.create_url("abc123", "https://example.com", None, now()))

        assert created.id > 0
        assert created.clicks == 0

        found = asyncio.run(storage.get_url_by_short_code("abc123"))
        assert found == created
        assert found.created_at.tzinfo is not None

    def test_short_code_lookup_is_case_sensitive(self, storage):
        """Test codes differing only in case are distinct"""
        asyncio.run(storage.create_url("AbC123", "https://example.com", None, now()))

        assert asyncio.run(storage.short_code_exists("AbC123"))
        assert not asyncio.run(storage.short_code_exists("abc123"))
        assert asyncio.run(storage.get_url_by_short_code("abc123")) is None

    def test_duplicate_short_code(self, storage):
        """Test the unique index rejects a second insert"""
        asyncio.run(storage.create_url("abc123", "https://first.example", None, now()))

        with pytest.raises(DuplicateShortCodeError):
            asyncio.run(storage.create_url("abc123", "https://second.example", None, now()))

        assert asyncio.run(storage.get_url_by_short_code("abc123")).long_url == "https://first.example"

    def test_increment_clicks(self, storage):
        """Test the counter update and the unknown-code no-op"""
        asyncio.run(storage.create_url("abc123", "https://example.com", None, now()))

        asyncio.run(storage.increment_url_clicks("abc123"))
        asyncio.run(storage.increment_url_clicks("abc123"))
        asyncio.run(storage.increment_url_clicks("missing"))

        assert asyncio.run(storage.get_url_by_short_code("abc123")).clicks == 2

    def test_recent_urls_order(self, storage):
        """Test newest first, with ties broken by id"""
        base = now()
        asyncio.run(storage.create_url("old", "https://example.com/old", None, base - timedelta(minutes=5)))
        tie_a = asyncio.run(storage.create_url("tie_a", "https://example.com/a", None, base))
        tie_b = asyncio.run(storage.create_url("tie_b", "https://example.com/b", None, base))

        recent = asyncio.run(storage.get_recent_urls(10))

        assert [url.short_code for url in recent] == ["tie_b", "tie_a", "old"]
        assert tie_b.id > tie_a.id
        assert asyncio.run(storage.get_recent_urls(1))[0].short_code == "tie_b"
        assert asyncio.run(storage.get_recent_urls(0)) == []

    def test_users(self, storage):
        """Test user creation, lookup and the unique username"""
        user = asyncio.run(storage.create_user("alice", "hashed-password"))

        assert asyncio.run(storage.get_user(user.id)) == user
        assert asyncio.run(storage.get_user_by_username("alice")) == user
        assert asyncio.run(storage.get_user(user.id + 100)) is None
        assert asyncio.run(storage.get_user_by_username("bob")) is None

        with pytest.raises(ConflictError):
            asyncio.run(storage.create_user("alice", "other"))

    def test_unreachable_database(self, tmp_path):
        """Test connection failures surface as StoreError"""
        storage = SQLAlchemyStorage(f"sqlite:///{tmp_path / 'missing' / 'dir' / 'test.db'}")

        with pytest.raises(StoreError):
            asyncio.run(storage.get_url_by_short_code("abc123"))

    def test_close_is_idempotent(self, tmp_path):
        """Test closing twice, and closing before first use"""
        storage = SQLAlchemyStorage(f"sqlite:///{tmp_path / 'test.db'}")
        storage.close()

        asyncio.run(storage.short_code_exists("abc123"))
        storage.close()
        storage.close()


class TestLazyConnection:
    """Test connect-once semantics"""

    def test_connects_once(self):
        """Test the handle is created on first use and reused afterwards"""
        connect = MagicMock(return_value="handle")
        connection = LazyConnection(connect)

        assert not connection.is_connected
        connect.assert_not_called()

        assert connection.get() == "handle"
        assert connection.get() == "handle"
        assert connection.is_connected
        connect.assert_called_once()

    def test_concurrent_callers_share_attempt(self):
        """Test callers arriving during a slow connect wait for it"""
        calls = []

        def slow_connect():
            calls.append(1)
            time.sleep(0.1)
            return object()

        connection = LazyConnection(slow_connect)
        results = []
        threads = [threading.Thread(target=lambda: results.append(connection.get())) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(calls) == 1
        assert len(results) == 8
        assert all(result is results[0] for result in results)

    def test_failure_is_retried(self):
        """Test a failed attempt is reported and the next call tries again"""
        connect = MagicMock(side_effect=[ConnectionError("refused"), "handle"])
        connection = LazyConnection(connect)

        with pytest.raises(ConnectionError):
            connection.get()
        assert not connection.is_connected

        assert connection.get() == "handle"
        assert connect.call_count == 2

    def test_reset(self):
        """Test reset returns the old handle and forces a reconnect"""
        connect = MagicMock(side_effect=["first", "second"])
        connection = LazyConnection(connect)

        assert connection.reset() is None
        connection.get()

        assert connection.reset() == "first"
        assert connection.get() == "second"


class TestObjectIdProjection:
    """Test ObjectId <-> integer id mapping"""

    def test_round_trip(self):
        object_id = ObjectId()

        assert int_to_object_id(object_id_to_int(object_id)) == object_id

    def test_distinct_ids(self):
        first, second = ObjectId(), ObjectId()

        assert object_id_to_int(first) != object_id_to_int(second)

    @pytest.mark.parametrize("value", [-1, 1 << 96])
    def test_out_of_range(self, value):
        assert int_to_object_id(value) is None


@pytest.fixture
def mongo():
    """MongoStorage wired to a mocked database"""
    collection = MagicMock()
    db = MagicMock()
    db.__getitem__.return_value = collection

    storage = MongoStorage(url="mongodb://unused:27017")
    storage._connection = LazyConnection(lambda: db, name="mongodb")
    return storage, collection


class TestMongoStorage:
    """Test the document backend against a mocked driver"""

    def test_create_url(self, mongo):
        """Test insert builds the record from the generated ObjectId"""
        storage, collection = mongo
        object_id = ObjectId()
        collection.insert_one.return_value.inserted_id = object_id

        url = asyncio.run(storage.create_url("abc123", "https://example.com", "abc123", now()))

        assert url.id == object_id_to_int(object_id)
        assert url.short_code == "abc123"
        assert url.custom_alias == "abc123"
        assert url.clicks == 0

        doc = collection.insert_one.call_args[0][0]
        assert doc["shortCode"] == "abc123"
        assert doc["longUrl"] == "https://example.com"

    def test_duplicate_short_code(self, mongo):
        """Test DuplicateKeyError maps to DuplicateShortCodeError"""
        storage, collection = mongo
        collection.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")

        with pytest.raises(DuplicateShortCodeError):
            asyncio.run(storage.create_url("abc123", "https://example.com", None, now()))

    def test_duplicate_username(self, mongo):
        storage, collection = mongo
        collection.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")

        with pytest.raises(ConflictError):
            asyncio.run(storage.create_user("alice", "secret"))

    def test_get_url(self, mongo):
        """Test documents are mapped to records"""
        storage, collection = mongo
        object_id = ObjectId()
        created_at = now()
        collection.find_one.return_value = {
            "_id": object_id,
            "shortCode": "abc123",
            "longUrl": "https://example.com",
            "customAlias": None,
            "createdAt": created_at,
            "clicks": 4,
        }

        url = asyncio.run(storage.get_url_by_short_code("abc123"))

        assert url.id == object_id_to_int(object_id)
        assert url.clicks == 4
        assert url.created_at == created_at
        collection.find_one.assert_called_once_with({"shortCode": "abc123"})

    def test_get_missing_url(self, mongo):
        storage, collection = mongo
        collection.find_one.return_value = None

        assert asyncio.run(storage.get_url_by_short_code("missing")) is None
        assert not asyncio.run(storage.short_code_exists("missing"))

    def test_increment_uses_inc(self, mongo):
        """Test the counter update is a single atomic $inc"""
        storage, collection = mongo

        asyncio.run(storage.increment_url_clicks("abc123"))

        collection.update_one.assert_called_once_with({"shortCode": "abc123"}, {"$inc": {"clicks": 1}})

    def test_recent_urls_zero_limit(self, mongo):
        """Test limit 0 never reaches the driver"""
        storage, collection = mongo

        assert asyncio.run(storage.get_recent_urls(0)) == []
        collection.find.assert_not_called()

    def test_recent_urls(self, mongo):
        storage, collection = mongo
        docs = [
            {"_id": ObjectId(), "shortCode": code, "longUrl": "https://example.com", "createdAt": now(), "clicks": 0}
            for code in ("newer", "older")
        ]
        collection.find.return_value.sort.return_value.limit.return_value = iter(docs)

        recent = asyncio.run(storage.get_recent_urls(2))

        assert [url.short_code for url in recent] == ["newer", "older"]
        collection.find.return_value.sort.return_value.limit.assert_called_once_with(2)

    def test_driver_error(self, mongo):
        """Test driver failures become StoreError"""
        storage, collection = mongo
        collection.find_one.side_effect = ServerSelectionTimeoutError("no servers")

        with pytest.raises(StoreError):
            asyncio.run(storage.get_url_by_short_code("abc123"))

    def test_connection_error(self):
        """Test an unreachable server becomes StoreError and is retried next call"""
        storage = MongoStorage(url="mongodb://unused:27017")
        connect = MagicMock(side_effect=ServerSelectionTimeoutError("no servers"))
        storage._connection = LazyConnection(connect, name="mongodb")

        with pytest.raises(StoreError):
            asyncio.run(storage.short_code_exists("abc123"))
        with pytest.raises(StoreError):
            asyncio.run(storage.short_code_exists("abc123"))

        assert connect.call_count == 2

    def test_slow_connect_does_not_block_event_loop(self):
        """Test other coroutines keep running while a connect attempt hangs"""
        release = threading.Event()

        def hanging_connect():
            release.wait(timeout=5)
            raise ServerSelectionTimeoutError("no servers")

        storage = MongoStorage(url="mongodb://unused:27017")
        storage._connection = LazyConnection(hanging_connect, name="mongodb")

        async def scenario():
            lookup = asyncio.create_task(storage.get_url_by_short_code("abc123"))
            await asyncio.sleep(0.05)
            # The loop got back to us while the lookup is still connecting
            still_connecting = not lookup.done()
            release.set()
            with pytest.raises(StoreError):
                await lookup
            return still_connecting

        assert asyncio.run(scenario())

    def test_get_user_out_of_range(self, mongo):
        """Test ids that cannot be an ObjectId are simply absent"""
        storage, collection = mongo

        assert asyncio.run(storage.get_user(-1)) is None
        collection.find_one.assert_not_called()


class TestStorageFactory:
    """Test backend selection"""

    def teardown_method(self):
        StorageFactory.clear_instance()

    def test_creates_sqlalchemy(self):
        storage = StorageFactory.create(StorageBackend.SQLALCHEMY)
        assert isinstance(storage, SQLAlchemyStorage)

    def test_creates_mongodb_without_connecting(self):
        """Test building the Mongo strategy does not touch the network"""
        storage = StorageFactory.create(StorageBackend.MONGODB)

        assert isinstance(storage, MongoStorage)
        assert not storage._connection.is_connected

    def test_singleton(self):
        first = StorageFactory.create(StorageBackend.SQLALCHEMY)
        assert StorageFactory.create(StorageBackend.SQLALCHEMY) is first
