"""Payments domain - Stripe payment intents, refunds and event dispatch"""
