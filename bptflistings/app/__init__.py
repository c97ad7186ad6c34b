"""Application-level configuration for bptflistings."""
