"""
Pydantic domain models (frozen, except the ``RunMetadata`` audit record).
"""
