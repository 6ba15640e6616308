"""
In-Memory Bitrix24 Gateway

Keeps contacts, sessions and Open Channel messages in dicts.
Used for local development (BITRIX24_PROVIDER=memory) and tests.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from openlines_bridge.bitrix.base import (
    PARAM_MESSAGE_ID,
    PARAM_MESSAGE_TYPE,
    PARAM_SENT,
    PARAM_TIMESTAMP,
    BitrixGateway,
    compose_open_channel_text,
    split_contact_name,
)
from openlines_bridge.contracts.models import (
    MessageKind,
    OpenChannelSession,
    RelayedMessage,
)
from openlines_bridge.core.results import GatewayResult
from openlines_bridge.providers.base import ProviderError
from openlines_bridge.routing.session import digits_only, to_session_key

logger = logging.getLogger(__name__)


@dataclass
class StoredMessage:
    id: int
    session_id: int
    author_id: int
    message: str
    files: list[dict[str, Any]] = field(default_factory=list)
    params: dict[str, Any] = field(default_factory=dict)

    def as_bitrix(self) -> dict[str, Any]:
        return {
            "ID": self.id,
            "AUTHOR_ID": self.author_id,
            "MESSAGE": self.message,
            "FILES": list(self.files),
            "PARAMS": dict(self.params),
        }


class InMemoryBitrixGateway(BitrixGateway):
    """
    In-memory gateway.

    failing_methods names operations that should return a failed result,
    e.g. {"send_message_to_open_channel"}.
    """

    def __init__(self, failing_methods: set[str] | None = None):
        self.failing_methods = set(failing_methods or ())
        self.contacts: dict[int, dict[str, Any]] = {}
        self.sessions: dict[str, int] = {}
        self.messages: dict[int, list[StoredMessage]] = {}
        self.status_updates: list[tuple[str, str]] = []
        self._next_id = 1

    def _new_id(self) -> int:
        value = self._next_id
        self._next_id += 1
        return value

    def _failure(self, operation: str) -> GatewayResult | None:
        if operation in self.failing_methods:
            logger.warning(f"[MEMORY] Simulated failure in {operation}")
            return GatewayResult.failure(ProviderError(f"Simulated failure in {operation}", code="SIMULATED"))
        return None

    async def find_or_create_contact(self, phone: str, name: str) -> GatewayResult[dict[str, Any]]:
        if failed := self._failure("find_or_create_contact"):
            return failed

        digits = digits_only(phone)
        for contact in self.contacts.values():
            if digits_only(contact["PHONE"][0]["VALUE"]) == digits:
                return GatewayResult.success(contact)

        first_name, last_name = split_contact_name(name)
        contact_id = self._new_id()
        contact = {
            "ID": contact_id,
            "NAME": first_name,
            "LAST_NAME": last_name,
            "SOURCE_ID": "WHATSAPP",
            "PHONE": [{"VALUE": phone, "VALUE_TYPE": "WORK"}],
        }
        self.contacts[contact_id] = contact
        logger.info(f"[MEMORY] Created contact {contact_id}", extra={"phone": phone})
        return GatewayResult.success(contact)

    async def get_or_create_session(
        self,
        user_identifier: str,
        contact: dict[str, Any],
    ) -> GatewayResult[int]:
        if failed := self._failure("get_or_create_session"):
            return failed

        user_code = str(to_session_key(user_identifier))
        if user_code not in self.sessions:
            session_id = self._new_id()
            self.sessions[user_code] = session_id
            self.messages[session_id] = []
            logger.info(f"[MEMORY] Created session {session_id}", extra={"user_code": user_code})
        return GatewayResult.success(self.sessions[user_code])

    async def send_message_to_open_channel(
        self,
        session_id: int,
        content: str,
        media_url: str = "",
        kind: MessageKind | str = MessageKind.TEXT,
        external_id: str = "",
        timestamp: str = "",
    ) -> GatewayResult[int]:
        if failed := self._failure("send_message_to_open_channel"):
            return failed

        kind_value = str(getattr(kind, "value", kind))
        message = StoredMessage(
            id=self._new_id(),
            session_id=session_id,
            author_id=0,
            message=compose_open_channel_text(content, media_url, kind_value),
            params={
                PARAM_MESSAGE_ID: external_id,
                PARAM_MESSAGE_TYPE: kind_value,
                PARAM_TIMESTAMP: timestamp,
            },
        )
        self.messages.setdefault(session_id, []).append(message)
        return GatewayResult.success(message.id)

    def add_agent_message(
        self,
        session_id: int,
        text: str,
        author_id: int = 1,
        files: list[dict[str, Any]] | None = None,
    ) -> int:
        """Simulate an operator reply written in Bitrix24."""
        message = StoredMessage(
            id=self._new_id(),
            session_id=session_id,
            author_id=author_id,
            message=text,
            files=files or [],
        )
        self.messages.setdefault(session_id, []).append(message)
        return message.id

    async def get_messages_from_open_channel(
        self,
        session_id: int,
        limit: int = 50,
    ) -> GatewayResult[list[RelayedMessage]]:
        if failed := self._failure("get_messages_from_open_channel"):
            return failed

        stored = self.messages.get(session_id, [])[-limit:]
        return GatewayResult.success([RelayedMessage.from_bitrix(m.as_bitrix(), session_id) for m in stored])

    async def list_active_sessions(self) -> GatewayResult[list[OpenChannelSession]]:
        if failed := self._failure("list_active_sessions"):
            return failed

        return GatewayResult.success(
            [OpenChannelSession(session_id=sid, user_code=code) for code, sid in self.sessions.items()]
        )

    async def mark_message_relayed(self, message: RelayedMessage) -> GatewayResult[bool]:
        if failed := self._failure("mark_message_relayed"):
            return failed

        for stored in self.messages.get(message.session_id, []):
            if stored.id == message.bitrix_message_id:
                stored.params[PARAM_SENT] = "Y"
                return GatewayResult.success(True)
        return GatewayResult.failure(ProviderError("Message not found", code="NOT_FOUND"))

    async def update_message_status(self, external_message_id: str, status: str) -> bool:
        self.status_updates.append((external_message_id, status))
        return True

    async def get_connection_info(self) -> GatewayResult[dict[str, Any]]:
        if failed := self._failure("get_connection_info"):
            return failed
        return GatewayResult.success({"ID": "memory", "NAME": "In-memory Bitrix24"})
