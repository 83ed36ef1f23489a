"""Per-tenant integration credential vault and provider webhook ingestion"""
