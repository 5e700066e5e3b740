"""
Data Ingestion Module
"""
from .loaders import DataQualityError, LoadResult, clean_frame, load_marketing_rows, load_sale_rows

__all__ = [
    "DataQualityError",
    "LoadResult",
    "clean_frame",
    "load_marketing_rows",
    "load_sale_rows",
]
