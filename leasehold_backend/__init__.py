"""Leasehold lease lifecycle service."""
