"""Shared payload builders for tests."""

from tests.helpers.payloads import stripe_event, whatsapp_payload

__all__ = ["stripe_event", "whatsapp_payload"]
