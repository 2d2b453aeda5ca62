from __future__ import annotations

import uuid
from typing import NewType

ClientMsgId = NewType("ClientMsgId", str)


def new_client_msg_id() -> ClientMsgId:
    return ClientMsgId(uuid.uuid4().hex)
