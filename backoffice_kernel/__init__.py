"""
Back-Office Kernel

Inventory ledger and staff compliance core for a restaurant back office:
- Append-only stock ledger with serialized per-item stock projection
- Alert derivation over item state
- Document-compliance status derivation
- Read-side aggregates computed from persisted state
"""

__version__ = "0.1.0"
