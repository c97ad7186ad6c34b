"""Infrastructure layer for bptflistings.

Holds the HTTP adapter for the classifieds API, the JSON-backed item schema
and the logging/metrics helpers.
"""
