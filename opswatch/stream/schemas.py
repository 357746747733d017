"""Pydantic schemas for inbound event-channel frames.

These models only exist at the decode boundary: the decoder validates a raw
frame against them and converts the result into the frozen dataclasses in
``opswatch.models.watchers``.  Field aliases follow the dashboard backend's
JSON names (``isRunning``, ``handledEventCount``, ...).
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    TypeAdapter,
    model_validator,
)


def _coerce_running(value: object) -> object:
    # The backend reports isRunning as an int; any positive value is running.
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value >= 0:
        return value > 0
    raise ValueError("isRunning must be a boolean or a non-negative integer")


def _parse_timestamp(value: object) -> object:
    # The backend may fill lastEvent with free text such as "<nil>".
    if value is None:
        return None
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    raise ValueError("lastEvent must be a string")


Running = Annotated[bool, BeforeValidator(_coerce_running)]
Counter = Annotated[StrictInt, Field(ge=0)]
Timestamp = Annotated[datetime | None, BeforeValidator(_parse_timestamp)]


class WireKey(BaseModel):
    """``{namespace, resource}`` watcher key."""

    model_config = ConfigDict(extra="ignore")

    namespace: StrictStr = ""
    resource: StrictStr = Field(min_length=1)


class WireState(BaseModel):
    """Full watcher state carried by a snapshot frame."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    running: Running = Field(alias="isRunning")
    queue: StrictBool = False
    handled_event_count: Counter = Field(alias="handledEventCount")
    unhandled_event_count: Counter = Field(alias="unhandledEventCount")
    events: Counter | None = None
    last_event: Timestamp = Field(default=None, alias="lastEvent")

    @model_validator(mode="after")
    def _check_total(self) -> WireState:
        if self.events is not None and self.events != self.handled_event_count + self.unhandled_event_count:
            raise ValueError("events must equal handledEventCount + unhandledEventCount")
        return self


class WireFields(BaseModel):
    """Field subset carried by a delta frame.  Unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    running: Running | None = Field(default=None, alias="isRunning")
    queue: StrictBool | None = None
    handled_event_count: Counter | None = Field(default=None, alias="handledEventCount")
    unhandled_event_count: Counter | None = Field(default=None, alias="unhandledEventCount")
    events: Counter | None = None
    last_event: Timestamp = Field(default=None, alias="lastEvent")

    @model_validator(mode="after")
    def _check_fields(self) -> WireFields:
        if not self.model_fields_set:
            raise ValueError("delta must update at least one field")
        if self.events is not None:
            if self.handled_event_count is None or self.unhandled_event_count is None:
                raise ValueError("events requires handledEventCount and unhandledEventCount")
            if self.events != self.handled_event_count + self.unhandled_event_count:
                raise ValueError("events must equal handledEventCount + unhandledEventCount")
        return self


class SnapshotFrame(BaseModel):
    type: Literal["snapshot"]
    key: WireKey
    state: WireState


class DeltaFrame(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["delta"]
    key: WireKey
    changes: WireFields = Field(alias="fields")


class RemovedFrame(BaseModel):
    type: Literal["removed"]
    key: WireKey


Frame = Annotated[SnapshotFrame | DeltaFrame | RemovedFrame, Field(discriminator="type")]

FRAME_ADAPTER: TypeAdapter[SnapshotFrame | DeltaFrame | RemovedFrame] = TypeAdapter(Frame)
