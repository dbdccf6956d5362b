"""Hybrid search and ranking engine for contributor/work matching.

Subpackages:
- ``contribux.common``: configuration, logging, metrics, and the error taxonomy.
- ``contribux.store``: the data-access contract and its three strategies.
- ``contribux.search``: scoring primitives, ranking and auxiliary scorers.

Usage:
- Acquire a store with ``contribux.store.factory.connect`` and pass it to
  ``contribux.search.engine.SearchEngine``.
"""

__version__ = "0.1.0"
