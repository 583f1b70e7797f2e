"""Realtime wire messages.

Server events form a closed union discriminated on ``type``; every variant carries
``listId`` and its own typed body. Envelope keys are camelCase on the wire, entity bodies
keep the REST response shape.
"""

from datetime import UTC, datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from src.models.enums import ShareRole, ShareStatus
from src.schemas.item import ItemResponse
from src.schemas.list import ListDetail


class _Message(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _ListEvent(_Message):
    list_id: int
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ListCreated(_ListEvent):
    type: Literal["listCreated"] = "listCreated"
    list: ListDetail


class ListUpdate(_ListEvent):
    """Full list after a membership, role or bulk item change."""

    type: Literal["listUpdate"] = "listUpdate"
    list: ListDetail


class ListDeleted(_ListEvent):
    type: Literal["listDeleted"] = "listDeleted"


class ItemAdded(_ListEvent):
    type: Literal["itemAdded"] = "itemAdded"
    item: ItemResponse


class ItemUpdated(_ListEvent):
    type: Literal["itemUpdated", "itemToggled"] = "itemUpdated"
    item: ItemResponse


class ItemDeleted(_ListEvent):
    type: Literal["itemDeleted"] = "itemDeleted"
    item_id: int


class InvitePending(_ListEvent):
    """Sent to the invitee's private room."""

    type: Literal["invitePending"] = "invitePending"
    list: ListDetail
    role: ShareRole


class InviteResponded(_ListEvent):
    type: Literal["inviteResponded"] = "inviteResponded"
    list: ListDetail
    user_id: int
    status: ShareStatus


class RoleChanged(_ListEvent):
    type: Literal["yourRoleChanged", "roleChanged"] = "yourRoleChanged"
    list: ListDetail
    role: ShareRole


class ListAccessRemoved(_ListEvent):
    type: Literal["listAccessRemoved"] = "listAccessRemoved"


class ListSharedWithYou(_ListEvent):
    type: Literal["listSharedWithYou"] = "listSharedWithYou"
    list: ListDetail


ServerEvent = Annotated[
    ListCreated
    | ListUpdate
    | ListDeleted
    | ItemAdded
    | ItemUpdated
    | ItemDeleted
    | InvitePending
    | InviteResponded
    | RoleChanged
    | ListAccessRemoved
    | ListSharedWithYou,
    Field(discriminator="type"),
]

server_event_adapter: TypeAdapter[ServerEvent] = TypeAdapter(ServerEvent)


def encode_event(event: _ListEvent) -> str:
    """Serialise an event for the wire."""
    return event.model_dump_json(by_alias=True)


def decode_event(raw: str | bytes) -> ServerEvent:
    """Parse a wire event into its typed variant."""
    return server_event_adapter.validate_json(raw)


# Client -> server messages


class JoinList(_Message):
    type: Literal["joinList"]
    list_id: int


class LeaveList(_Message):
    type: Literal["leaveList"]
    list_id: int


class Ping(_Message):
    type: Literal["ping"]


class Pong(_Message):
    type: Literal["pong"]


ClientMessage = Annotated[JoinList | LeaveList | Ping | Pong, Field(discriminator="type")]

client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)

PING_FRAME = '{"type":"ping"}'
PONG_FRAME = '{"type":"pong"}'
