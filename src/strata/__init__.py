"""
Strata: composable storage combinators.

Backends and decorators (caching, content addressing, versioning,
encryption, audit logging, routing) all implement one storage contract,
so they can be stacked in whatever order a caller needs.
"""

__version__ = "0.1.0"
