"""
Financial calculation kernel.

Shared foundation for the calculation engines and the service shell:
- Decimal-only Money and AccountingPeriod value objects
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging
- SQLAlchemy base and ORM models (service layer only)
"""

__version__ = "0.1.0"
