"""Core data models for the event log and state snapshots.

Uses Pydantic v2 for validation and JSON serialization. Domain events are
opaque to the core: any mapping or pydantic model is accepted and stored
as its JSON-compatible field set.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .constants import INITIAL_VERSION, SNAPSHOT_VERSION_FIELD

DomainEvent = Mapping[str, Any] | BaseModel


class IndexedEvent(BaseModel):
    """A domain event plus its permanent zero-based position in the log.

    Payload fields are kept as pydantic extras, so they read as attributes
    (``event.type``) or by key (``event["type"]``).
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    index: int = Field(ge=0)

    @property
    def payload(self) -> dict[str, Any]:
        """The event's own fields, without ``index``."""
        return dict(self.model_extra or {})

    def __getitem__(self, key: str) -> Any:
        if key == "index":
            return self.index
        return (self.model_extra or {})[key]

    def get(self, key: str, default: Any = None) -> Any:
        try:
            return self[key]
        except KeyError:
            return default

    def to_json_line(self) -> str:
        """Serialize as one NDJSON line (trailing newline included)."""
        return self.model_dump_json() + "\n"


def event_payload(event: DomainEvent) -> dict[str, Any]:
    """Return a plain dict of an event's fields."""
    if isinstance(event, IndexedEvent):
        return event.payload
    if isinstance(event, BaseModel):
        return event.model_dump(mode="json")
    if isinstance(event, Mapping):
        return dict(event)
    raise TypeError(
        f"Events must be mappings or pydantic models, got {type(event).__name__}"
    )


def index_event(event: DomainEvent, index: int) -> IndexedEvent:
    """Attach ``index`` to an event. An existing ``index`` key is replaced."""
    payload = event_payload(event)
    payload.pop("index", None)
    return IndexedEvent.model_validate({**payload, "index": index})


class StateSnapshot(BaseModel):
    """A read-model state together with the version it reflects.

    Serialized as ``{"_version": <int>, "state": <state>}``. Documents
    using a plain ``version`` key are also accepted on read.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version: int = Field(default=INITIAL_VERSION, alias=SNAPSHOT_VERSION_FIELD)
    state: Any = None

    def to_document(self) -> dict[str, Any]:
        """JSON-compatible dict using the persisted field names."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_document(
        cls, document: Mapping[str, Any], state_type: Any = None
    ) -> "StateSnapshot":
        """Build a snapshot from a persisted document.

        Args:
            document: Parsed JSON document
            state_type: Optional type (e.g. a pydantic model) to validate
                the ``state`` field against

        Raises:
            pydantic.ValidationError: If the document is malformed
        """
        snapshot = cls.model_validate(document)
        if state_type is not None:
            state = TypeAdapter(state_type).validate_python(snapshot.state)
            snapshot = snapshot.model_copy(update={"state": state})
        return snapshot
