"""
Relay Coordinator

Polls Bitrix24 Open Channel sessions for operator replies and delivers them
to WhatsApp:
1. Lists active sessions and keeps WhatsApp ones
2. Reads recent messages of each session
3. Keeps operator messages not relayed yet
4. Sends each one and flags it WHATSAPP_SENT
"""

import logging

from openlines_bridge.bitrix.base import PARAM_MESSAGE_ID, BitrixGateway
from openlines_bridge.contracts.models import OpenChannelSession, RelayedMessage
from openlines_bridge.providers.base import WhatsAppProvider
from openlines_bridge.routing.session import is_whatsapp_session, phone_from_session_key
from openlines_bridge.service.locks import InProcessRelayLock, RelayLock
from openlines_bridge.service.outbound_handler import OutboundHandler
from openlines_bridge.service.translator import build_outbound_instruction

logger = logging.getLogger(__name__)


def filter_new_agent_messages(messages: list[RelayedMessage]) -> list[RelayedMessage]:
    """Operator messages (positive author ID) that were not relayed yet, in original order."""
    return [m for m in messages if m.author_id > 0 and not m.already_relayed]


def latest_inbound_message_id(messages: list[RelayedMessage]) -> str:
    """Most recent WhatsApp message ID of a session (anchor for the typing indicator)."""
    for message in reversed(messages):
        external_id = message.params.get(PARAM_MESSAGE_ID)
        if external_id:
            return str(external_id)
    return ""


class RelayCoordinator:
    """
    Runs relay cycles.

    A message is flagged relayed only after WhatsApp accepted it; failed sends
    stay eligible for the next cycle.
    """

    def __init__(
        self,
        provider: WhatsAppProvider,
        bitrix: BitrixGateway,
        lock: RelayLock | None = None,
        message_limit: int = 50,
    ):
        self.provider = provider
        self.bitrix = bitrix
        self.lock = lock or InProcessRelayLock()
        self.message_limit = message_limit
        self.outbound = OutboundHandler(provider, bitrix)

    async def run_cycle(self) -> int:
        """
        Run one relay cycle.

        Returns:
            Number of messages delivered to WhatsApp (0 when another cycle holds the lock)
        """
        if not await self.lock.acquire():
            logger.info("Relay cycle already running, skipping")
            return 0

        try:
            return await self._relay_all()
        finally:
            await self.lock.release()

    async def _relay_all(self) -> int:
        logger.info("Starting message polling")

        sessions = await self.bitrix.list_active_sessions()
        if not sessions.ok:
            logger.error(f"Could not list Open Channel sessions: {sessions.error_message}")
            return 0

        relayed = 0
        for session in sessions.value or []:
            relayed += await self._relay_session(session)

        logger.info(f"Completed message polling, relayed {relayed} messages", extra={"relayed": relayed})
        return relayed

    async def _relay_session(self, session: OpenChannelSession) -> int:
        if not is_whatsapp_session(session.user_code):
            return 0

        phone = phone_from_session_key(session.user_code)
        if not phone:
            logger.warning(f"Skipping session with malformed user code: {session.user_code}")
            return 0

        history = await self.bitrix.get_messages_from_open_channel(session.session_id, self.message_limit)
        if not history.ok:
            logger.error(
                f"Could not read session messages: {history.error_message}",
                extra={"session_id": session.session_id},
            )
            return 0

        messages = history.value or []
        pending = filter_new_agent_messages(messages)
        if not pending:
            return 0

        anchor = latest_inbound_message_id(messages)
        if anchor:
            await self.provider.send_typing_indicator(anchor)

        relayed = 0
        for message in pending:
            if await self._relay_message(phone, message):
                relayed += 1
        return relayed

    async def _relay_message(self, phone: str, message: RelayedMessage) -> bool:
        instruction = build_outbound_instruction(message)
        if len(message.files) > 1:
            logger.warning(
                f"Message has {len(message.files)} files, relaying only the first",
                extra={"bitrix_message_id": message.bitrix_message_id},
            )

        response = await self.outbound.send_instruction(phone, instruction)
        if not response.success:
            logger.error(
                f"Error relaying message to WhatsApp: {response.error_message}",
                extra={"bitrix_message_id": message.bitrix_message_id, "error_code": response.error_code},
            )
            return False

        marked = await self.bitrix.mark_message_relayed(message)
        if not marked.ok:
            # Delivered but unflagged: the next cycle will send it again
            logger.error(
                f"Message sent but not flagged as relayed: {marked.error_message}",
                extra={"bitrix_message_id": message.bitrix_message_id},
            )

        logger.info(
            "Relayed message to WhatsApp",
            extra={"bitrix_message_id": message.bitrix_message_id, "whatsapp_message_id": response.message_id},
        )
        return True
