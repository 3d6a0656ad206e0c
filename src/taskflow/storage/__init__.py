"""Document store backends (in-memory, SQLite)."""
