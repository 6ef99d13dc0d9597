"""
app/repositories package marker.
"""

from app.repositories.category_repository import CategoryRepository
from app.repositories.company_repository import CompanyRepository

__all__ = [
    "CategoryRepository",
    "CompanyRepository",
]
