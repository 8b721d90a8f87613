"""
Unit Tests

Unit tests run in isolation without external dependencies.
Redis is mocked and the SQL backend runs against in-memory SQLite.
"""
