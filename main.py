import logging
from contextlib import asynccontextmanager
from datetime import datetime, date
from typing import Any, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import Settings, settings as default_settings
from database import BUS_COLLECTION, TRIP_COLLECTION, check_connection, create_document, ensure_indexes, get_client
from errors import APIError, InternalError, ValidationError
from logging_config import setup_logging
from repositories import BusRepository, TripRepository, store_errors
from schemas import BusInfo, Trip

logger = logging.getLogger(__name__)

router = APIRouter()

# ------------------------------------
# Utils
# ------------------------------------

def serialize_doc(value: Any) -> Any:
    """Make a Mongo document JSON-friendly, including embedded trips and stops."""
    if isinstance(value, dict):
        return {k: serialize_doc(v) for k, v in value.items()}
    if isinstance(value, list):
        return [serialize_doc(v) for v in value]
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_bus_repository(db: Database = Depends(get_db)) -> BusRepository:
    return BusRepository(db)


def get_trip_repository(db: Database = Depends(get_db)) -> TripRepository:
    return TripRepository(db)

# ------------------------------------
# Basic endpoints
# ------------------------------------

@router.get("/")
def read_root():
    return {"message": "Bus Fleet API is running"}


@router.get("/test")
def test_database(db: Database = Depends(get_db)):
    """Report whether the database answers, based on a real round trip"""
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": db.name,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        response["collections"] = db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except PyMongoError as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"
    return response


@router.post("/api/seed")
def seed_sample_data(db: Database = Depends(get_db)):
    """Seed a few sample buses, mirroring their trips into the trip collection"""
    with store_errors():
        if db[BUS_COLLECTION].count_documents({}) > 0:
            return {"status": "ok", "message": "Buses already seeded"}

        city_loop = {
            "trip_number": "T1",
            "schedule": "Daily 08:00",
            "initial_stop": "Central",
            "final_stop": "Airport",
            "route": "City Loop",
            "stops": [
                {"stop_name": "Central", "arrival_time": "08:00"},
                {"stop_name": "Market", "arrival_time": "08:15"},
                {"stop_name": "Airport", "arrival_time": "08:45"},
            ],
        }
        harbour_run = {
            "trip_number": "T2",
            "schedule": "Every 30 min",
            "initial_stop": "Harbour",
            "final_stop": "Central",
            "route": "Harbour Line",
            "stops": [
                {"stop_name": "Harbour", "arrival_time": "09:00"},
                {"stop_name": "Market", "arrival_time": "09:10"},
                {"stop_name": "Central", "arrival_time": "09:25"},
            ],
        }
        sample_buses = [
            {"name": "Express1", "bus_number": "B100", "bus_type": "AC", "trips": [city_loop]},
            {"name": "Shuttle", "bus_number": "B200", "bus_type": "Non-AC", "trips": [harbour_run]},
        ]

        for bus in sample_buses:
            trips = [{"_id": ObjectId(), **t} for t in bus["trips"]]
            create_document(db, BUS_COLLECTION, {**bus, "trips": trips})
            for t in bus["trips"]:
                create_document(db, TRIP_COLLECTION, t)

    return {"status": "ok", "message": "Seeded sample buses and trips"}

# ------------------------------------
# Buses
# ------------------------------------

@router.post("/api/buses", status_code=201)
def create_bus(payload: BusInfo, buses: BusRepository = Depends(get_bus_repository)):
    return serialize_doc(buses.create(payload))


@router.get("/api/buses")
def list_buses(buses: BusRepository = Depends(get_bus_repository)):
    return serialize_doc(buses.list())


# Registered ahead of the nested trip routes so /api/buses/stop/... is never read as a bus number
@router.get("/api/buses/stop/{stop_name}")
def trips_serving_stop(stop_name: str, trips: TripRepository = Depends(get_trip_repository)):
    """All trips calling at the stop, one entry per matching stop"""
    return serialize_doc(trips.serving_stop(stop_name))


@router.get("/api/buses/{bus_number}")
def get_bus(bus_number: str, buses: BusRepository = Depends(get_bus_repository)):
    return serialize_doc(buses.get(bus_number))


@router.put("/api/buses/{bus_number}")
def update_bus(bus_number: str, payload: BusInfo, buses: BusRepository = Depends(get_bus_repository)):
    return serialize_doc(buses.update(bus_number, payload))


@router.delete("/api/buses/{bus_number}")
def delete_bus(bus_number: str, buses: BusRepository = Depends(get_bus_repository)):
    buses.delete(bus_number)
    return {"message": "Bus deleted successfully"}

# ------------------------------------
# Trips of a bus
# ------------------------------------

@router.post("/api/buses/{bus_number}/trips", status_code=201)
def add_trip(bus_number: str, payload: Trip, trips: TripRepository = Depends(get_trip_repository)):
    """Append a trip and return the whole updated bus"""
    return serialize_doc(trips.add(bus_number, payload))


@router.get("/api/buses/{bus_number}/trips")
def list_trips(bus_number: str, trips: TripRepository = Depends(get_trip_repository)):
    return serialize_doc(trips.list(bus_number))


@router.put("/api/buses/{bus_number}/trips/{trip_number}")
def update_trip(bus_number: str, trip_number: str, payload: Trip, trips: TripRepository = Depends(get_trip_repository)):
    return serialize_doc(trips.update(bus_number, trip_number, payload))


@router.delete("/api/buses/{bus_number}/trips/{trip_number}")
def delete_trip(bus_number: str, trip_number: str, trips: TripRepository = Depends(get_trip_repository)):
    trips.delete(bus_number, trip_number)
    return {"message": "Trip deleted successfully"}

# ------------------------------------
# Stop to stop search
# ------------------------------------

@router.get("/api/trips")
def search_trips(
    from_stop: str = Query(..., alias="fromStopName", min_length=1),
    to_stop: str = Query(..., alias="toStopName", min_length=1),
    trips: TripRepository = Depends(get_trip_repository),
):
    """Standalone trips passing from_stop before to_stop"""
    return serialize_doc(trips.between(from_stop, to_stop))

# ------------------------------------
# App factory
# ------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        if isinstance(exc, InternalError):
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.debug("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
        return JSONResponse(status_code=400, content={"message": ValidationError().message})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"message": str(exc)})


def create_app(database: Optional[Database] = None, settings: Settings = default_settings) -> FastAPI:
    """Build the API.

    Pass ``database`` to use an existing pymongo-compatible database
    (tests hand in a mongomock one); otherwise a client is created from
    ``settings.database_url`` and closed on shutdown.
    """
    setup_logging(settings.log_level)

    client = None
    if database is None:
        client = get_client(settings.database_url)
        database = client[settings.database_name]

    def prepare_store() -> None:
        if client is not None and not check_connection(client):
            return
        logger.info("MongoDB connected")
        try:
            ensure_indexes(database)
        except PyMongoError as e:
            logger.error("MongoDB index creation failed: %s", e)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # pymongo blocks until server selection times out; keep it off the event loop
        await run_in_threadpool(prepare_store)
        yield
        if client is not None:
            await run_in_threadpool(client.close)

    app = FastAPI(title="Bus Fleet API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.db = database

    register_exception_handlers(app)
    app.include_router(router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    logger.info("Server is running on port %s", default_settings.port)
    uvicorn.run(app, host=default_settings.host, port=default_settings.port)
