"""MongoDB introspection by sampling documents."""

import logging
import re
import uuid
from datetime import datetime
from typing import Any

from bson import Binary, Code, DBRef, Decimal128, Int64, MaxKey, MinKey, ObjectId, Regex, Timestamp
from pymongo.database import Database

from schiba.config import DEFAULT_TIMEOUT_MS, MONGO_SAMPLE_SIZE
from schiba.db.connection import mongo_client
from schiba.models import (
    AnalysisResult,
    CollectionIndex,
    CollectionInfo,
    ConnectionConfig,
    DatabaseType,
    Schema,
    SchemaStats,
)

logger = logging.getLogger(__name__)

# Database used when the URL names none
FALLBACK_DATABASE = "test"

# Checked in order: bool before int, Int64 before int, Code before str
_BSON_TYPE_NAMES: list[tuple[type | tuple[type, ...], str]] = [
    (type(None), "null"),
    (bool, "bool"),
    (Int64, "long"),
    (float, "double"),
    (Code, "javascript"),
    (str, "string"),
    (ObjectId, "objectId"),
    (datetime, "date"),
    (Decimal128, "decimal"),
    ((Binary, bytes, uuid.UUID), "binData"),
    ((Regex, re.Pattern), "regex"),
    (Timestamp, "timestamp"),
    (MinKey, "minKey"),
    (MaxKey, "maxKey"),
    ((dict, DBRef), "object"),
    ((list, tuple), "array"),
]


def bson_type_name(value: Any) -> str:
    """MongoDB's alias for the BSON type a decoded value came from."""
    if isinstance(value, int) and not isinstance(value, bool | Int64):
        return "int" if -(2**31) <= value < 2**31 else "long"
    for types, name in _BSON_TYPE_NAMES:
        if isinstance(value, types):
            return name
    return type(value).__name__


def describe_documents(name: str, documents: list[dict[str, Any]]) -> CollectionInfo:
    """Union of keys in first-seen order with the distinct types seen per key.

    The first document is kept as ``sample_data``.
    """
    types: dict[str, list[str]] = {}
    for doc in documents:
        for key, value in doc.items():
            seen = types.setdefault(key, [])
            type_name = bson_type_name(value)
            if type_name not in seen:
                seen.append(type_name)
    return CollectionInfo(
        collection=name,
        fields=list(types),
        types=types,
        sample_data=documents[0] if documents else None,
    )


def calculate_stats(schema: Schema) -> SchemaStats:
    fields = sum(len(c.fields) for c in schema.collections)
    indexes = sum(len(c.indexes) for c in schema.collections)
    count = len(schema.collections)
    return SchemaStats(
        total_size=len(schema.to_json().encode("utf-8")),
        object_count=count,
        details={"collections": count, "fields": fields, "indexes": indexes},
    )


class MongoAnalyzer:
    """Infers collection shapes from a small random sample of each collection.

    Collections that yield no documents are left out of the result.
    """

    def __init__(
        self,
        config: ConnectionConfig,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        sample_size: int = MONGO_SAMPLE_SIZE,
    ) -> None:
        self.config = config
        self.timeout_ms = timeout_ms
        self.sample_size = sample_size

    def analyze(self) -> AnalysisResult:
        with mongo_client(self.config, self.timeout_ms) as client:
            db = client.get_default_database(default=FALLBACK_DATABASE)
            logger.debug("Analyzing '%s' database %s", self.config.tag, db.name)
            collections = self._extract_collections(db)

        schema = Schema(engine=DatabaseType.MONGODB, collections=collections)
        stats = calculate_stats(schema)
        logger.debug("Analyzed '%s': %s", self.config.tag, stats.details)
        return AnalysisResult(schema=schema, stats=stats)

    def _extract_collections(self, db: Database) -> list[CollectionInfo]:
        result = []
        for name in sorted(db.list_collection_names()):
            sample = list(db[name].aggregate([{"$sample": {"size": self.sample_size}}]))
            if not sample:
                logger.debug("Skipping empty collection %s", name)
                continue

            info = describe_documents(name, sample)
            info.indexes = [
                CollectionIndex(
                    name=index["name"],
                    key=dict(index["key"]),
                    unique=bool(index.get("unique", False)),
                )
                for index in db[name].list_indexes()
            ]
            result.append(info)
        return result
