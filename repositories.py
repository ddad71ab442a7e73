"""
Data access for buses and their trips.

Repositories look records up by business key (bus_number, trip_number)
rather than by ObjectId. Every store call goes through ``store_errors``
so pymongo failures surface as API errors instead of leaking out.

Trip mutations are single atomic updates on the bus document
($push / positional $set / $pull), so two writers touching the same
bus cannot overwrite each other's trips.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from database import BUS_COLLECTION, TRIP_COLLECTION, create_document, get_documents
from errors import ConflictError, InternalError, NotFoundError
from schemas import BusInfo, Trip

logger = logging.getLogger(__name__)

BUS_NOT_FOUND = "Bus not found"
TRIP_NOT_FOUND = "Trip not found"
DUPLICATE_BUS = "Bus with this bus_number already exists"


@contextmanager
def store_errors() -> Iterator[None]:
    try:
        yield
    except DuplicateKeyError as e:
        # the only unique index is bus.bus_number
        raise ConflictError(DUPLICATE_BUS) from e
    except PyMongoError as e:
        raise InternalError(str(e)) from e


class BusRepository:
    """CRUD on the "bus" collection keyed by bus_number."""

    def __init__(self, db: Database):
        self.db = db
        self.collection = db[BUS_COLLECTION]

    def create(self, bus: BusInfo) -> Dict[str, Any]:
        """Insert a new bus with no trips.

        Raises ConflictError when the bus_number is already taken, either
        by the pre-insert lookup or by the unique index on a racing insert.
        """
        with store_errors():
            if self.collection.find_one({"bus_number": bus.bus_number}) is not None:
                raise ConflictError(DUPLICATE_BUS)
            doc = {**bus.model_dump(), "trips": []}
            new_id = create_document(self.db, BUS_COLLECTION, doc)
            logger.info("Created bus %s", bus.bus_number)
            return self.collection.find_one({"_id": ObjectId(new_id)})

    def list(self) -> List[Dict[str, Any]]:
        with store_errors():
            return get_documents(self.db, BUS_COLLECTION)

    def get(self, bus_number: str) -> Dict[str, Any]:
        with store_errors():
            bus = self.collection.find_one({"bus_number": bus_number})
        if bus is None:
            raise NotFoundError(BUS_NOT_FOUND)
        return bus

    def update(self, bus_number: str, bus: BusInfo) -> Dict[str, Any]:
        """Replace name, bus_number and bus_type; trips are left alone."""
        with store_errors():
            updated = self.collection.find_one_and_update(
                {"bus_number": bus_number},
                {"$set": bus.model_dump()},
                return_document=ReturnDocument.AFTER,
            )
        if updated is None:
            raise NotFoundError(BUS_NOT_FOUND)
        logger.info("Updated bus %s", bus_number)
        return updated

    def delete(self, bus_number: str) -> None:
        with store_errors():
            deleted = self.collection.find_one_and_delete({"bus_number": bus_number})
        if deleted is None:
            raise NotFoundError(BUS_NOT_FOUND)
        logger.info("Deleted bus %s with %d trip(s)", bus_number, len(deleted.get("trips", [])))


class TripRepository:
    """Trips embedded in buses, plus the two stop lookups."""

    def __init__(self, db: Database):
        self.db = db
        self.buses = db[BUS_COLLECTION]

    @staticmethod
    def _trip_document(trip: Trip) -> Dict[str, Any]:
        return {"_id": ObjectId(), **trip.model_dump()}

    def _bus_exists(self, bus_number: str) -> bool:
        return self.buses.find_one({"bus_number": bus_number}, {"_id": 1}) is not None

    def add(self, bus_number: str, trip: Trip) -> Dict[str, Any]:
        """Append a trip to the bus and return the updated bus.

        trip_number is not checked against existing trips, so a bus may
        end up with several trips sharing one number.
        """
        with store_errors():
            bus = self.buses.find_one_and_update(
                {"bus_number": bus_number},
                {"$push": {"trips": self._trip_document(trip)}},
                return_document=ReturnDocument.AFTER,
            )
        if bus is None:
            raise NotFoundError(BUS_NOT_FOUND)
        logger.info("Added trip %s to bus %s", trip.trip_number, bus_number)
        return bus

    def list(self, bus_number: str) -> List[Dict[str, Any]]:
        with store_errors():
            bus = self.buses.find_one({"bus_number": bus_number}, {"trips": 1})
        if bus is None:
            raise NotFoundError(BUS_NOT_FOUND)
        return bus.get("trips", [])

    def update(self, bus_number: str, trip_number: str, trip: Trip) -> Dict[str, Any]:
        """Replace the first trip numbered ``trip_number``; later duplicates stay as they are."""
        new_trip = self._trip_document(trip)
        with store_errors():
            bus = self.buses.find_one_and_update(
                {"bus_number": bus_number, "trips.trip_number": trip_number},
                {"$set": {"trips.$": new_trip}},
                return_document=ReturnDocument.AFTER,
            )
            if bus is None:
                raise NotFoundError(BUS_NOT_FOUND if not self._bus_exists(bus_number) else TRIP_NOT_FOUND)
        logger.info("Updated trip %s of bus %s", trip_number, bus_number)
        for stored in bus.get("trips", []):
            if stored.get("_id") == new_trip["_id"]:
                return stored
        return new_trip

    def delete(self, bus_number: str, trip_number: str) -> None:
        """Remove every trip numbered ``trip_number``. No error when none matched."""
        with store_errors():
            result = self.buses.update_one(
                {"bus_number": bus_number},
                {"$pull": {"trips": {"trip_number": trip_number}}},
            )
        if result.matched_count == 0:
            raise NotFoundError(BUS_NOT_FOUND)
        logger.info("Deleted trip %s from bus %s (modified=%d)", trip_number, bus_number, result.modified_count)

    def serving_stop(self, stop_name: str) -> List[Dict[str, Any]]:
        """Trips of any bus that call at ``stop_name``.

        A trip is emitted once per matching stop, so a trip visiting the
        stop twice appears twice.
        """
        with store_errors():
            buses = get_documents(self.db, BUS_COLLECTION, {"trips.stops.stop_name": stop_name})
        if not buses:
            raise NotFoundError("No buses found for this stop")

        results = []
        for bus in buses:
            for trip in bus.get("trips", []):
                for stop in trip.get("stops", []):
                    if stop.get("stop_name") == stop_name:
                        results.append(trip)
        if not results:
            raise NotFoundError("No buses found for this stop")
        return results

    def between(self, from_stop: str, to_stop: str) -> List[Dict[str, Any]]:
        """Standalone trips that reach ``from_stop`` before ``to_stop``.

        Only the first occurrence of each stop counts. Results keep the
        store's order.
        """
        with store_errors():
            candidates = get_documents(
                self.db,
                TRIP_COLLECTION,
                {"$and": [{"stops.stop_name": from_stop}, {"stops.stop_name": to_stop}]},
            )
        return [t for t in candidates if stop_precedes(t.get("stops", []), from_stop, to_stop)]


def first_stop_index(stops: List[Dict[str, Any]], stop_name: str) -> Optional[int]:
    for i, stop in enumerate(stops):
        if stop.get("stop_name") == stop_name:
            return i
    return None


def stop_precedes(stops: List[Dict[str, Any]], from_stop: str, to_stop: str) -> bool:
    from_idx = first_stop_index(stops, from_stop)
    to_idx = first_stop_index(stops, to_stop)
    if from_idx is None or to_idx is None:
        return False
    return from_idx < to_idx
