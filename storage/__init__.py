"""
Storage Package.

This package manages all collector persistence: projects,
quality observations, config history, dashboard components
and collector registrations.

Modules:
- database: Engine and session management
- models/: ORM models
- repositories/: Data access layer
"""
