"""
Portfolio Kernel

Persistence, domain values and infrastructure for the property-portfolio
reconciliation engine:
- Ledger entries with parent/child consolidation
- Learned entity mappings per owner
- Locale-aware amount parsing
- Structured logging and typed errors
"""

__version__ = "0.1.0"
