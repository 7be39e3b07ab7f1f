"""
Utility modules for the supplier onboarding service.
"""

from .config import Config, get_config, reset_config

__all__ = ["Config", "get_config", "reset_config"]
