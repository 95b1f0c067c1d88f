"""
Configuration package for the onboarding importer service.
"""

from .base import Config, DevelopmentConfig, ProductionConfig, TestingConfig

__all__ = [
    "Config",
    "DevelopmentConfig",
    "ProductionConfig",
    "TestingConfig",
]
