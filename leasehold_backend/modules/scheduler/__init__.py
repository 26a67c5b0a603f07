"""Scheduled sweeps over leases and notifications."""
