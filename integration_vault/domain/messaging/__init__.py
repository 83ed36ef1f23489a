"""Messaging domain - Inbound webhook ingestion and outbound messages"""
