"""Validators for the bulk entity import pipeline."""

from app.validators.mapping_validator import HeaderMappingError, MappingValidator

__all__ = ["HeaderMappingError", "MappingValidator"]
