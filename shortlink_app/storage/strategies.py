"""
Storage strategies using Strategy Pattern.

Allows switching between different stores behind one repository interface:
- MongoDB: document store, production
- SQLAlchemy: relational store (SQLite by default), development and tests

Both strategies share a lazily created connection and project store-native
identifiers into the integer `id` of the returned records.

Driver calls block, so every async method runs its store work in a worker
thread with asyncio.to_thread. A slow or unreachable store then holds up
only the requests that wait on it, never the event loop.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError
from sqlalchemy import create_engine, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from shortlink_app.exceptions import ConflictError, DuplicateShortCodeError, StoreError
from shortlink_app.models import Base, URL, User
from shortlink_app.storage.connection import LazyConnection
from shortlink_app.storage.models import UrlRecord, UserRecord

logger = logging.getLogger(__name__)


class StorageStrategy(ABC):
    """
    Abstract base class for storage strategies.

    The repository contract the URL service consumes. Implementations cover
    the capability set {create, find-one, find-by-id, find-many-ordered,
    update-counter} for users and URLs.

    Lookups return None for a missing record. Store failures are raised as
    StoreError, unique-index violations as ConflictError.
    """

    # User operations

    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[UserRecord]:
        """Find a user by public numeric id"""
        pass

    @abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        """Find a user by username"""
        pass

    @abstractmethod
    async def create_user(self, username: str, password: str) -> UserRecord:
        """
        Create a user.

        Raises:
            ConflictError: If the username is taken
        """
        pass

    # URL operations

    @abstractmethod
    async def create_url(
        self,
        short_code: str,
        long_url: str,
        custom_alias: Optional[str],
        created_at: datetime
    ) -> UrlRecord:
        """
        Insert a new URL record with clicks = 0.

        Args:
            short_code: Unique short code (generated or alias)
            long_url: Destination URL
            custom_alias: The alias if the user picked one, else None
            created_at: Creation time

        Returns:
            The stored record including its id

        Raises:
            DuplicateShortCodeError: If the store already holds short_code
        """
        pass

    @abstractmethod
    async def get_url_by_short_code(self, short_code: str) -> Optional[UrlRecord]:
        """Exact-match lookup by short code"""
        pass

    @abstractmethod
    async def short_code_exists(self, short_code: str) -> bool:
        """Check whether any record uses short_code"""
        pass

    @abstractmethod
    async def increment_url_clicks(self, short_code: str) -> None:
        """Atomically add 1 to clicks. No-op if the code is unknown."""
        pass

    @abstractmethod
    async def get_recent_urls(self, limit: int) -> List[UrlRecord]:
        """Up to `limit` records, newest first"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Drop the shared connection (next call reconnects)"""
        pass


# MongoDB


def object_id_to_int(object_id: ObjectId) -> int:
    """Project a 12-byte ObjectId onto a (96-bit) integer, losslessly"""
    return int(str(object_id), 16)


def int_to_object_id(value: int) -> Optional[ObjectId]:
    """Inverse of object_id_to_int. None if value cannot be an ObjectId."""
    if value < 0 or value >= 1 << 96:
        return None
    return ObjectId(format(value, "024x"))


class MongoStorage(StorageStrategy):
    """
    MongoDB implementation (document store).

    Collections:
    - users: {username (unique), password}
    - urls:  {shortCode (unique), longUrl, customAlias, createdAt, clicks}

    The client is created on first use and shared by every request.
    Indexes are ensured as part of connecting.
    """

    USERS = "users"
    URLS = "urls"

    def __init__(
        self,
        url: str = "mongodb://localhost:27017",
        database: str = "shortlink",
        timeout_ms: int = 5000
    ):
        """
        Args:
            url: MongoDB connection string
            database: Database name
            timeout_ms: Server selection timeout
        """
        self.url = url
        self.database = database
        self.timeout_ms = timeout_ms
        self._connection: LazyConnection[Database] = LazyConnection(self._connect, name="mongodb")

    def _connect(self) -> Database:
        client = MongoClient(self.url, serverSelectionTimeoutMS=self.timeout_ms, tz_aware=True)
        try:
            # Fails fast when the server is unreachable
            client.admin.command("ping")
            db = client[self.database]
            db[self.USERS].create_index("username", unique=True)
            db[self.URLS].create_index("shortCode", unique=True)
            db[self.URLS].create_index([("createdAt", DESCENDING), ("_id", DESCENDING)])
        except Exception:
            client.close()
            raise
        return db

    def _db(self) -> Database:
        try:
            return self._connection.get()
        except PyMongoError as e:
            raise StoreError(f"Could not connect to MongoDB: {e}") from e

    @contextmanager
    def _errors(self, operation: str):
        """Translate driver errors into StoreError"""
        try:
            yield
        except PyMongoError as e:
            logger.error(f"MongoDB {operation} failed: {e}")
            raise StoreError(f"MongoDB {operation} failed: {e}") from e

    @staticmethod
    def _to_user(doc: Dict[str, Any]) -> UserRecord:
        return UserRecord(
            id=object_id_to_int(doc["_id"]),
            username=doc["username"],
            password=doc["password"]
        )

    @staticmethod
    def _to_url(doc: Dict[str, Any]) -> UrlRecord:
        return UrlRecord(
            id=object_id_to_int(doc["_id"]),
            short_code=doc["shortCode"],
            long_url=doc["longUrl"],
            custom_alias=doc.get("customAlias"),
            created_at=doc["createdAt"],
            clicks=doc.get("clicks", 0)
        )

    # Blocking driver work, run in a worker thread by the async methods below

    def _find_user(self, query: Dict[str, Any]) -> Optional[UserRecord]:
        with self._errors("find_user"):
            doc = self._db()[self.USERS].find_one(query)
        return self._to_user(doc) if doc else None

    def _insert_user(self, username: str, password: str) -> UserRecord:
        doc = {"username": username, "password": password}
        with self._errors("create_user"):
            try:
                result = self._db()[self.USERS].insert_one(doc)
            except DuplicateKeyError as e:
                raise ConflictError(f"Username '{username}' already exists") from e
        doc["_id"] = result.inserted_id
        return self._to_user(doc)

    def _insert_url(self, doc: Dict[str, Any]) -> UrlRecord:
        with self._errors("create_url"):
            try:
                result = self._db()[self.URLS].insert_one(doc)
            except DuplicateKeyError as e:
                raise DuplicateShortCodeError(doc["shortCode"]) from e
        doc["_id"] = result.inserted_id
        return self._to_url(doc)

    def _find_url(self, short_code: str) -> Optional[UrlRecord]:
        with self._errors("get_url_by_short_code"):
            doc = self._db()[self.URLS].find_one({"shortCode": short_code})
        return self._to_url(doc) if doc else None

    def _url_exists(self, short_code: str) -> bool:
        with self._errors("short_code_exists"):
            doc = self._db()[self.URLS].find_one({"shortCode": short_code}, {"_id": 1})
        return doc is not None

    def _inc_clicks(self, short_code: str) -> None:
        # $inc is atomic on a single document; no read-modify-write here
        with self._errors("increment_url_clicks"):
            self._db()[self.URLS].update_one({"shortCode": short_code}, {"$inc": {"clicks": 1}})

    def _find_recent(self, limit: int) -> List[UrlRecord]:
        with self._errors("get_recent_urls"):
            cursor = (
                self._db()[self.URLS]
                .find({})
                .sort([("createdAt", DESCENDING), ("_id", DESCENDING)])
                .limit(limit)
            )
            docs = list(cursor)
        return [self._to_url(doc) for doc in docs]

    async def get_user(self, user_id: int) -> Optional[UserRecord]:
        object_id = int_to_object_id(user_id)
        if object_id is None:
            return None
        return await asyncio.to_thread(self._find_user, {"_id": object_id})

    async def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        return await asyncio.to_thread(self._find_user, {"username": username})

    async def create_user(self, username: str, password: str) -> UserRecord:
        return await asyncio.to_thread(self._insert_user, username, password)

    async def create_url(
        self,
        short_code: str,
        long_url: str,
        custom_alias: Optional[str],
        created_at: datetime
    ) -> UrlRecord:
        doc = {
            "shortCode": short_code,
            "longUrl": long_url,
            "customAlias": custom_alias,
            "createdAt": created_at,
            "clicks": 0,
        }
        return await asyncio.to_thread(self._insert_url, doc)

    async def get_url_by_short_code(self, short_code: str) -> Optional[UrlRecord]:
        return await asyncio.to_thread(self._find_url, short_code)

    async def short_code_exists(self, short_code: str) -> bool:
        return await asyncio.to_thread(self._url_exists, short_code)

    async def increment_url_clicks(self, short_code: str) -> None:
        await asyncio.to_thread(self._inc_clicks, short_code)

    async def get_recent_urls(self, limit: int) -> List[UrlRecord]:
        # limit(0) means "no limit" to MongoDB
        if limit <= 0:
            return []
        return await asyncio.to_thread(self._find_recent, limit)

    def close(self) -> None:
        db = self._connection.reset()
        if db is not None:
            db.client.close()


# SQLAlchemy


class SQLAlchemyStorage(StorageStrategy):
    """
    SQLAlchemy implementation (relational store).

    Mirrors the document layout in two tables (see shortlink_app.models).
    The engine and session factory are created on first use; every
    operation runs in its own short-lived session so the strategy can be
    shared across requests, worker threads and background tasks.
    """

    def __init__(self, database_url: str = "sqlite:///./shortlink.db"):
        """
        Args:
            database_url: SQLAlchemy database URL
        """
        self.database_url = database_url
        self._connection: LazyConnection[sessionmaker] = LazyConnection(self._connect, name="sql database")

    def _connect(self) -> sessionmaker:
        connect_args = {}
        if self.database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False

        engine = create_engine(self.database_url, connect_args=connect_args)
        try:
            Base.metadata.create_all(bind=engine)
        except Exception:
            engine.dispose()
            raise
        return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    @contextmanager
    def _session(self, operation: str):
        """Yield a session; commit on success, translate driver errors"""
        try:
            session_factory = self._connection.get()
            with session_factory() as session:
                with session.begin():
                    yield session
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"SQL {operation} failed: {e}")
            raise StoreError(f"SQL {operation} failed: {e}") from e

    @staticmethod
    def _to_user(row: User) -> UserRecord:
        return UserRecord(id=row.id, username=row.username, password=row.password)

    @staticmethod
    def _to_url(row: URL) -> UrlRecord:
        return UrlRecord(
            id=row.id,
            short_code=row.short_code,
            long_url=row.long_url,
            custom_alias=row.custom_alias,
            created_at=row.created_at,
            clicks=row.clicks
        )

    # Blocking session work, run in a worker thread by the async methods below

    def _get_user(self, user_id: int) -> Optional[UserRecord]:
        with self._session("get_user") as session:
            row = session.get(User, user_id)
            return self._to_user(row) if row else None

    def _get_user_by_username(self, username: str) -> Optional[UserRecord]:
        with self._session("get_user_by_username") as session:
            row = session.scalars(select(User).where(User.username == username)).first()
            return self._to_user(row) if row else None

    def _insert_user(self, username: str, password: str) -> UserRecord:
        try:
            with self._session("create_user") as session:
                row = User(username=username, password=password)
                session.add(row)
                session.flush()
                return self._to_user(row)
        except IntegrityError as e:
            raise ConflictError(f"Username '{username}' already exists") from e

    def _insert_url(
        self,
        short_code: str,
        long_url: str,
        custom_alias: Optional[str],
        created_at: datetime
    ) -> UrlRecord:
        try:
            with self._session("create_url") as session:
                row = URL(
                    short_code=short_code,
                    long_url=long_url,
                    custom_alias=custom_alias,
                    created_at=created_at,
                    clicks=0
                )
                session.add(row)
                session.flush()  # assigns the id
                return self._to_url(row)
        except IntegrityError as e:
            raise DuplicateShortCodeError(short_code) from e

    def _find_url(self, short_code: str) -> Optional[UrlRecord]:
        with self._session("get_url_by_short_code") as session:
            row = session.scalars(select(URL).where(URL.short_code == short_code)).first()
            return self._to_url(row) if row else None

    def _url_exists(self, short_code: str) -> bool:
        with self._session("short_code_exists") as session:
            found = session.scalars(select(URL.id).where(URL.short_code == short_code)).first()
            return found is not None

    def _inc_clicks(self, short_code: str) -> None:
        # Single UPDATE; the database applies clicks + 1 atomically
        with self._session("increment_url_clicks") as session:
            session.execute(
                update(URL)
                .where(URL.short_code == short_code)
                .values(clicks=URL.clicks + 1)
            )

    def _find_recent(self, limit: int) -> List[UrlRecord]:
        with self._session("get_recent_urls") as session:
            rows = session.scalars(
                select(URL)
                .order_by(URL.created_at.desc(), URL.id.desc())
                .limit(limit)
            ).all()
            return [self._to_url(row) for row in rows]

    async def get_user(self, user_id: int) -> Optional[UserRecord]:
        return await asyncio.to_thread(self._get_user, user_id)

    async def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        return await asyncio.to_thread(self._get_user_by_username, username)

    async def create_user(self, username: str, password: str) -> UserRecord:
        return await asyncio.to_thread(self._insert_user, username, password)

    async def create_url(
        self,
        short_code: str,
        long_url: str,
        custom_alias: Optional[str],
        created_at: datetime
    ) -> UrlRecord:
        return await asyncio.to_thread(self._insert_url, short_code, long_url, custom_alias, created_at)

    async def get_url_by_short_code(self, short_code: str) -> Optional[UrlRecord]:
        return await asyncio.to_thread(self._find_url, short_code)

    async def short_code_exists(self, short_code: str) -> bool:
        return await asyncio.to_thread(self._url_exists, short_code)

    async def increment_url_clicks(self, short_code: str) -> None:
        await asyncio.to_thread(self._inc_clicks, short_code)

    async def get_recent_urls(self, limit: int) -> List[UrlRecord]:
        if limit <= 0:
            return []
        return await asyncio.to_thread(self._find_recent, limit)

    def close(self) -> None:
        session_factory = self._connection.reset()
        if session_factory is not None:
            session_factory.kw["bind"].dispose()
