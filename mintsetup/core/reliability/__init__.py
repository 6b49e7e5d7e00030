"""Reliability — retry with backoff for transient failures."""
