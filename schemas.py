"""
Database Schemas for the Bus Fleet API

Each Pydantic model describes a MongoDB document shape.
Bus documents embed their trips; the standalone "trip" collection
stores documents with the same shape as an embedded trip.

String fields use min_length=1 so an empty value counts as missing.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import List


class Document(BaseModel):
    # numbers sent for string fields are stored as their string form
    model_config = ConfigDict(coerce_numbers_to_str=True)


class Stop(Document):
    """
    One stop on a trip, in route order
    """
    stop_name: str = Field(..., min_length=1, description="Name of the stop")
    arrival_time: str = Field(..., min_length=1, description="Arrival time at the stop (free-form)")


class Trip(Document):
    """
    A trip run by a bus
    Embedded in: "bus".trips
    Collection: "trip"
    """
    trip_number: str = Field(..., min_length=1, description="Trip number, unique within its bus by convention")
    schedule: str = Field(..., min_length=1, description="Schedule, e.g. a time or frequency")
    initial_stop: str = Field(..., min_length=1, description="First stop name")
    final_stop: str = Field(..., min_length=1, description="Last stop name")
    route: str = Field(..., min_length=1, description="Route name")
    stops: List[Stop] = Field(..., min_length=1, description="Ordered stops along the route")


class BusInfo(Document):
    """
    Replaceable fields of a bus (create and update bodies)
    """
    name: str = Field(..., min_length=1, description="Display name")
    bus_number: str = Field(..., min_length=1, description="Bus number, unique across buses")
    bus_type: str = Field(..., min_length=1, description="Bus category, e.g. AC")


class Bus(BusInfo):
    """
    A bus and its trips
    Collection: "bus"
    """
    trips: List[Trip] = Field(default_factory=list, description="Trips in insertion order")
