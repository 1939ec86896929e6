"""
Storage Package.

Modules:
- database: Engine and session management
- models/: ORM models
- repositories/: Data access layer
"""
