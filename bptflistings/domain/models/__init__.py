"""Domain value types.

:class:`~bptflistings.domain.models.listing.Listing` depends on identity
resolution and is imported from its own module.
"""

from .currencies import Currencies
from .item import ItemDescriptor, ListingIntent

__all__ = ["Currencies", "ItemDescriptor", "ListingIntent"]
