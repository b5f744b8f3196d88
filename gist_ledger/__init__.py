"""
Gist Ledger - Source Package

A personal income/expense ledger whose entire transaction set is kept
in one private GitHub Gist file instead of a database.

DESIGN PRINCIPLES:
1. The remote document is read and written as a whole
2. Local edits are optimistic and roll back when the write fails
3. Writes to the document are strictly serialized
4. Views (history pages, statistics) are derived in memory
5. Storage backend is swappable
"""

__version__ = "1.0.0"
__author__ = "Gist Ledger Team"
