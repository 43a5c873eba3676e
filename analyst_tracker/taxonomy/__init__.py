"""
Closed vocabularies (StrEnums) shared across the engine.
"""
