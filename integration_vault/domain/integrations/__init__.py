"""Integrations domain - Provider credential storage, masking and status"""
