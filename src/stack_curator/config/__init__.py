"""
Configuration management for the stack curator.

Contains the Pydantic settings used for AWS session setup, waiter defaults
and logging.
"""

from .settings import Settings, get_settings

__all__ = ['Settings', 'get_settings']
