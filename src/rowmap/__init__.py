"""
rowmap - declarative mapping of dataclasses to SQL rows.

- rowmap.core: schema inspection, row marshalling, stores and DAOs
- rowmap.cli: ``rowmap`` command line (DDL preview, table creation)
"""

__version__ = "0.1.0"

from rowmap.core import *  # noqa
