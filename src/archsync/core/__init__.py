"""Ambient infrastructure for archsync: logging, error handling and rate limiting."""
