"""
Webhooks module - payment provider event reconciliation.

This module handles:
- Stripe and PayPal event types and their license transitions
- Signature verification against the provider secrets
- Replay protection through durable processed-event markers
"""
