"""Retail catalog ingestion service."""
