"""MongoDB commit store.

One document per commit in a single collection, upserted by its
composite _id with majority + journal acknowledgment.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pymongo import MongoClient
from pymongo.errors import PyMongoError
from pymongo.write_concern import WriteConcern

from .commits import CommitRecord

DEFAULT_MONGO_URI = "mongodb://localhost:27017"
DEFAULT_COLLECTION = "commits"
CONNECT_TIMEOUT_MS = 10_000


class StoreError(Exception):
    """MongoDB was unreachable or rejected a write."""


def default_db_name(now: datetime | None = None) -> str:
    """Per-run database name, e.g. gitalyze-20190101T120000000Z."""
    now = now or datetime.now(timezone.utc)
    now = now.astimezone(timezone.utc)
    stamp = now.strftime("%Y%m%dT%H%M%S") + f"{now.microsecond // 1000:03d}Z"
    return f"gitalyze-{stamp}"


class CommitStore:
    """Writes commit records into a MongoDB collection."""

    def __init__(
        self,
        uri: str = DEFAULT_MONGO_URI,
        db_name: str | None = None,
        collection: str = DEFAULT_COLLECTION,
    ):
        self.uri = uri
        self.db_name = db_name or default_db_name()
        self.collection_name = collection
        self._client: MongoClient | None = None
        self._collection = None

    def connect(self) -> None:
        """Open the connection and make sure the server answers."""
        try:
            self._client = MongoClient(self.uri, serverSelectionTimeoutMS=CONNECT_TIMEOUT_MS)
            self._client.admin.command("ping")
        except PyMongoError as e:
            raise StoreError(f"Cannot connect to MongoDB at {self.uri}: {e}")

        self._collection = self._client[self.db_name].get_collection(
            self.collection_name,
            write_concern=WriteConcern(w="majority", j=True),
        )

    def upsert(self, record: CommitRecord) -> None:
        """Insert or replace the fields of one commit document."""
        if self._collection is None:
            raise StoreError("Store is not connected")
        doc = record.to_document()
        try:
            self._collection.update_one(
                {"_id": doc["_id"]},
                {"$set": doc},
                upsert=True,
            )
        except PyMongoError as e:
            raise StoreError(f"Failed to write commit {record.hash}: {e}")

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            self._collection = None
