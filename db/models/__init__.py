"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.category import Category
from db.models.company import Company, CompanyType
from db.models.import_batch import ImportBatch, ImportBatchStatus, ImportRow

__all__ = [
    "Category",
    "Company",
    "CompanyType",
    "ImportBatch",
    "ImportBatchStatus",
    "ImportRow",
]
