"""Webhook verification and event dispatch."""

from openlines_bridge.webhook.dispatcher import DispatchResult, WebhookDispatcher

__all__ = ["DispatchResult", "WebhookDispatcher"]
