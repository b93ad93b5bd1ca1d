"""Concrete adapters for every interface in ``studyrag.interfaces``."""
