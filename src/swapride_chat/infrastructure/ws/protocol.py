"""WebSocket frame encoding and boundary validation."""
from __future__ import annotations

import logging

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from swapride_chat.application.dto.events import InboundEvent, OutboundEvent

logger = logging.getLogger(__name__)

_inbound_adapter: TypeAdapter[InboundEvent] = TypeAdapter(InboundEvent)
_outbound_adapter: TypeAdapter[OutboundEvent] = TypeAdapter(OutboundEvent)


def encode_event(event: BaseModel) -> str:
    return event.model_dump_json(by_alias=True, exclude_none=True)


def parse_inbound(raw: str | bytes) -> InboundEvent | None:
    """Server -> client frame, or None if it is not one we understand."""
    try:
        return _inbound_adapter.validate_json(raw)
    except PydanticValidationError as exc:
        logger.warning("Dropping invalid inbound frame: %s", exc.errors(include_url=False))
        return None


def parse_outbound(raw: str | bytes) -> OutboundEvent:
    """Client -> server frame. Raises pydantic's ValidationError."""
    return _outbound_adapter.validate_json(raw)
