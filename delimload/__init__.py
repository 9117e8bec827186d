"""
delimload: bulk-load delimited text files into PostgreSQL.
"""

__version__ = "0.1.0"
