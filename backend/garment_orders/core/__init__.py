"""
Core package for shared utilities.

Holds configuration, structured logging and rate limiting shared by the
database, service and API layers.
"""
