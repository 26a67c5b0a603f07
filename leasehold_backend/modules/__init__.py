"""Feature modules of the lease lifecycle service."""
