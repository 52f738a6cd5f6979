"""Concrete adapters for the interfaces in ``studykb.interfaces``."""
