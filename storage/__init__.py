"""
Storage Package.

This package manages all data persistence.

Modules:
- models/: ORM tables (deals, scans, findings, signals, audit log)
- repositories/: Data access layer
"""
