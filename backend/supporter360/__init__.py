"""Supporter 360: webhook ingestion and identity resolution for club supporters."""
