"""Host runtime event models.

The host streams events as ``{"type": ..., "properties": {...}}`` objects with
camel-cased keys. Known event types are parsed into a closed union; anything
else becomes :class:`UnknownEvent` so the router can ignore it in one place.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _HostModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ── Payload pieces ─────────────────────────────────────────────────────────────


class HostToolState(_HostModel):
    """Lifecycle state of a tool call. Input and output appear as it progresses."""

    status: str = "pending"
    """``pending`` | ``running`` | ``completed`` | ``error``."""
    input: dict[str, Any] | None = None
    output: str | None = None
    error: str | None = None
    title: str | None = None


class HostPart(_HostModel):
    """A streamed message part. Only the fields for its ``type`` are set."""

    id: str
    session_id: str = Field(alias="sessionID")
    message_id: str = Field(alias="messageID")
    type: str
    text: str | None = None
    tool: str | None = None
    call_id: str | None = Field(default=None, alias="callID")
    state: HostToolState | None = None
    filename: str | None = None
    url: str | None = None


class HostMessageInfo(_HostModel):
    id: str
    session_id: str = Field(alias="sessionID")
    role: str


class HostSessionInfo(_HostModel):
    id: str


# ── Events ─────────────────────────────────────────────────────────────────────


class _SessionRef(_HostModel):
    session_id: str = Field(alias="sessionID")


class SessionIdle(_HostModel):
    type: Literal["session.idle"] = "session.idle"
    properties: _SessionRef

    @property
    def session_id(self) -> str:
        return self.properties.session_id


class SessionCompacted(_HostModel):
    type: Literal["session.compacted"] = "session.compacted"
    properties: _SessionRef

    @property
    def session_id(self) -> str:
        return self.properties.session_id


class _SessionInfoRef(_HostModel):
    info: HostSessionInfo


class SessionDeleted(_HostModel):
    type: Literal["session.deleted"] = "session.deleted"
    properties: _SessionInfoRef

    @property
    def session_id(self) -> str:
        return self.properties.info.id


class _MessageInfoRef(_HostModel):
    info: HostMessageInfo


class MessageUpdated(_HostModel):
    type: Literal["message.updated"] = "message.updated"
    properties: _MessageInfoRef


class _PartRef(_HostModel):
    part: HostPart


class MessagePartUpdated(_HostModel):
    type: Literal["message.part.updated"] = "message.part.updated"
    properties: _PartRef


class UnknownEvent(_HostModel):
    """Any event type Memoir does not handle."""

    type: str = ""
    properties: Any = None


KnownEvent = Annotated[
    SessionIdle | SessionCompacted | SessionDeleted | MessageUpdated | MessagePartUpdated,
    Field(discriminator="type"),
]

HostEvent = (
    SessionIdle
    | SessionCompacted
    | SessionDeleted
    | MessageUpdated
    | MessagePartUpdated
    | UnknownEvent
)

KNOWN_EVENT_TYPES: frozenset[str] = frozenset(
    {
        "session.idle",
        "session.compacted",
        "session.deleted",
        "message.updated",
        "message.part.updated",
    }
)

_known_adapter: TypeAdapter[Any] = TypeAdapter(KnownEvent)


def parse_host_event(data: dict[str, Any]) -> HostEvent:
    """
    Parse a raw host event dict.

    Raises:
        pydantic.ValidationError: If a known event type carries a malformed payload.
    """
    if data.get("type") not in KNOWN_EVENT_TYPES:
        return UnknownEvent.model_validate(data)
    return _known_adapter.validate_python(data)
