"""
Stock Kernel

Transactional stock ledger for a multi-tenant parts inventory:
- One choke point for every quantity-on-hand change
- Append-only movement history
- Per-tenant document numbering via locked counter rows
- Tenant isolation on every read and write
"""

__version__ = "0.1.0"
