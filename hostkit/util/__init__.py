"""Shared helpers for hostkit: logging, retries, validation and networking."""
