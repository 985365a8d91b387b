"""
MongoDB access for the school API.

Holds the module-level ``db`` handle, the startup connection loop and the small
document helpers shared by the route handlers.
"""
import re
import time
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, MongoClient
from pymongo.errors import PyMongoError

from config import MONGODB_URI, DATABASE_NAME, DB_CONNECT_ATTEMPTS
from errors import DependencyFailure, NotFound

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "mbizo-school"

client: Optional[MongoClient] = None
db = None


# ----------------------- Connection -----------------------
def mask_uri(uri: str) -> str:
    """Hide the password part of a mongodb:// or mongodb+srv:// URI."""
    return re.sub(
        r"(mongodb(?:\+srv)?://)([^:/@]+):(.*?)@",
        lambda m: f"{m.group(1)}{m.group(2)}:{'***' if m.group(3) else ''}@",
        uri,
    )


def extract_host(uri: str) -> Optional[str]:
    m = re.search(r"@([^/?]+)", uri)
    if m:
        return m.group(1)
    m = re.search(r"mongodb(?:\+srv)?://(.*?)(?:/|$)", uri)
    if m and m.group(1):
        return m.group(1)
    return None


def connect_with_retry(uri: str, attempts: int = DB_CONNECT_ATTEMPTS) -> MongoClient:
    """Ping the server up to ``attempts`` times, sleeping ``attempt`` seconds between tries."""
    for attempt in range(1, attempts + 1):
        try:
            mongo = MongoClient(uri, serverSelectionTimeoutMS=5000)
            mongo.admin.command("ping")
            logger.info("MongoDB connected successfully (attempt %d)", attempt)
            return mongo
        except PyMongoError as e:
            logger.error("MongoDB connect attempt %d failed: %s", attempt, e)
            if attempt == attempts:
                logger.error("All MongoDB connection attempts failed")
                raise DependencyFailure("Could not connect to the database") from e
            time.sleep(attempt)
    raise DependencyFailure("Could not connect to the database")


def init_db(uri: str = MONGODB_URI):
    global client, db
    logger.info("Using MongoDB URI: %s", mask_uri(uri))
    host = extract_host(uri)
    if not host or "." not in host:
        logger.warning("MongoDB URI host looks suspicious or is missing a domain: %s", host)

    client = connect_with_retry(uri)
    if DATABASE_NAME:
        db = client[DATABASE_NAME]
    else:
        db = client.get_default_database(default=DEFAULT_DATABASE)
    ensure_indexes(db)
    return db


def close_db() -> None:
    global client, db
    if client is not None:
        client.close()
    client = None
    db = None


def ensure_indexes(database) -> None:
    database["user"].create_index([("username", ASCENDING)], unique=True)


def get_db():
    if db is None:
        raise DependencyFailure("Database not configured")
    return db


# ----------------------- Document helpers -----------------------
def now() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: str, what: str = "Record") -> ObjectId:
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise NotFound(f"{what} not found")


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    doc["id"] = str(doc.pop("_id"))
    return doc


def create_document(database, collection_name: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Insert ``data`` with timestamps and return the stored document, serialized."""
    doc = dict(data)
    stamp = now()
    doc.setdefault("created_at", stamp)
    doc["updated_at"] = stamp
    res = database[collection_name].insert_one(doc)
    doc["_id"] = res.inserted_id
    return serialize(doc)


def get_documents(database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  sort: Optional[List] = None, limit: int = 0) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return [serialize(d) for d in cursor]


def attach_names(database, docs: List[Dict[str, Any]], ref_field: str, name_field: str) -> List[Dict[str, Any]]:
    """Join the display name of the user referenced by ``ref_field`` onto each document."""
    ids = {d.get(ref_field) for d in docs if d.get(ref_field)}
    oids = [ObjectId(i) for i in ids if ObjectId.is_valid(i)]
    names = {}
    if oids:
        for user in database["user"].find({"_id": {"$in": oids}}, {"name": 1}):
            names[str(user["_id"])] = user.get("name")
    for d in docs:
        d[name_field] = names.get(d.get(ref_field))
    return docs
