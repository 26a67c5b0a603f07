"""Properties and units."""

from .models import Property, Unit

__all__ = [
    "Property",
    "Unit",
]
