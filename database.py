"""
MongoDB client construction and collection helpers.

The client is built explicitly from settings and handed to the app
(``create_app(database=...)``); nothing here holds a module-level
connection, so tests can pass in any pymongo-compatible database.

Collections:
- "bus": bus documents with embedded trips
- "trip": standalone trips, same shape as the embedded ones
"""

import logging
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)

BUS_COLLECTION = "bus"
TRIP_COLLECTION = "trip"


def get_client(database_url: str) -> MongoClient:
    # connect=False: no sockets or monitor threads until the first operation
    return MongoClient(database_url, connect=False)


def check_connection(client: MongoClient) -> bool:
    try:
        client.admin.command("ping")
        return True
    except PyMongoError as e:
        logger.error("MongoDB connection error: %s", e)
        return False


def ensure_indexes(db: Database) -> None:
    """Create the indexes the API relies on (idempotent)."""
    db[BUS_COLLECTION].create_index([("bus_number", ASCENDING)], unique=True)
    db[BUS_COLLECTION].create_index([("trips.stops.stop_name", ASCENDING)])
    db[TRIP_COLLECTION].create_index([("stops.stop_name", ASCENDING)])


def create_document(db: Database, collection_name: str, data: Dict[str, Any]) -> str:
    """Insert a copy of ``data`` and return the new id as a string."""
    doc = dict(data)
    result = db[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
) -> List[Dict[str, Any]]:
    return list(db[collection_name].find(filter_dict or {}))
