"""
Test support utilities for tablemap tests.

- records: record types used across test modules (valid and broken)
- fakes: in-memory CatalogProvider / SqlExecutor doubles
"""
