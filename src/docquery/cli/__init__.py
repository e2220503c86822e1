"""
docquery CLI.

Commands:
    docquery explain COLLECTION [options]   Print the compiled pipeline
    docquery ping                           Check the MongoDB connection
"""

from .app import app, run

__all__ = ["app", "run"]
