"""Domain layer: items, prices, listings and identity resolution.

Nothing in this package performs I/O; the schema is consumed through the
:class:`~bptflistings.domain.schema.ItemSchema` protocol.
"""
