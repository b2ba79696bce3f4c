"""
EA Builder

Backend for composing, versioning, ranking and trading EA model configurations.
"""

__version__ = "1.0.0"
