"""
tablemap - Map annotated record types to relational table rows.

- tablemap.core: mapper, markers, mapping model, SQL generation
"""

__version__ = "0.1.0"

# Re-export everything from the actual implementation
from tablemap.core import *  # noqa
