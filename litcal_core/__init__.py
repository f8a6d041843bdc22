"""Pure layer of the Liturgical Calendar API client.

Modules:
    types   Response model and the HttpClient / CacheBackend protocols.
    errors  Error taxonomy shared by every layer.
    config  Immutable, validated configuration objects.
    index   Pydantic models of the ``/calendars`` metadata index.

Nothing in this package performs I/O.
"""
