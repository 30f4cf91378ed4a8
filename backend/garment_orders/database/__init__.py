"""
Database package initialization.

The package is split into:
- base: declarative base and column mixins
- connection: engine and session management
- errors: driver-independent database error signatures
- models: ORM models for every table
"""

__all__ = []
