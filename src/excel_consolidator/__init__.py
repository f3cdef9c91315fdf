"""Excel Consolidator - merge many workbooks into one formatted sheet."""

from excel_consolidator.api import app, create_app

__all__ = ["app", "create_app"]
__version__ = "0.1.0"
