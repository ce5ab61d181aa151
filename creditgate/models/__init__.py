"""
Models package - API (Pydantic) and domain (dataclass) models.
"""
