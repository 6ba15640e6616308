"""
Relay Poller - Bitrix24 to WhatsApp

This service:
1. Lists active Open Channel sessions
2. Picks up operator replies not yet relayed
3. Sends them to WhatsApp and flags them as sent

Cycles are single-flight; set REDIS_URL when running several replicas.
"""

import asyncio
import logging
import signal

from openlines_bridge.bitrix import BitrixGateway, get_gateway
from openlines_bridge.core.logging import setup_logging
from openlines_bridge.core.settings import Settings, get_settings
from openlines_bridge.providers import WhatsAppProvider, get_provider
from openlines_bridge.service.locks import get_relay_lock
from openlines_bridge.service.relay import RelayCoordinator

logger = logging.getLogger(__name__)

# Pause between cycles while there is work to do
POLL_INTERVAL_BUSY = 1.0
# Upper bound of the idle backoff
POLL_INTERVAL_MAX = 60.0

# Graceful shutdown
shutdown_requested = False


def signal_handler(signum, frame):
    global shutdown_requested
    logger.info(f"Received signal {signum}, requesting shutdown...")
    shutdown_requested = True


def build_coordinator(
    settings: Settings,
    provider: WhatsAppProvider | None = None,
    bitrix: BitrixGateway | None = None,
) -> RelayCoordinator:
    return RelayCoordinator(
        provider=provider or get_provider(settings),
        bitrix=bitrix or get_gateway(settings),
        lock=get_relay_lock(settings),
        message_limit=settings.relay_message_limit,
    )


async def run_once(
    settings: Settings | None = None,
    provider: WhatsAppProvider | None = None,
    bitrix: BitrixGateway | None = None,
) -> int:
    """
    Run a single relay cycle (for cron-style scheduling).

    Returns number of messages relayed.
    """
    settings = settings or get_settings()
    coordinator = build_coordinator(settings, provider, bitrix)
    try:
        return await coordinator.run_cycle()
    finally:
        await coordinator.provider.close()
        await coordinator.bitrix.close()


def idle_delay(poll_interval: float, consecutive_empty: int) -> float:
    """Exponential backoff with max."""
    return min(poll_interval * (1.5 ** min(consecutive_empty, 5)), POLL_INTERVAL_MAX)


async def run_loop(coordinator: RelayCoordinator, poll_interval: float) -> None:
    consecutive_empty = 0

    while not shutdown_requested:
        try:
            count = await coordinator.run_cycle()
        except Exception as e:
            logger.error(f"Error in relay loop: {e}", exc_info=True)
            await asyncio.sleep(poll_interval)
            continue

        if count > 0:
            logger.info(f"Relayed {count} messages to WhatsApp")
            consecutive_empty = 0
            await asyncio.sleep(POLL_INTERVAL_BUSY)
        else:
            consecutive_empty += 1
            await asyncio.sleep(idle_delay(poll_interval, consecutive_empty))


def main():
    """Main relay loop."""
    settings = get_settings()
    setup_logging(settings)

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    logger.info(
        f"Starting relay poller (limit={settings.relay_message_limit}, "
        f"poll_interval={settings.relay_poll_interval}s, redis_lock={bool(settings.redis_url)})"
    )

    coordinator = build_coordinator(settings)

    async def _run():
        try:
            await run_loop(coordinator, settings.relay_poll_interval)
        finally:
            await coordinator.provider.close()
            await coordinator.bitrix.close()

    asyncio.run(_run())

    logger.info("Relay poller shutting down gracefully")


if __name__ == "__main__":
    main()
