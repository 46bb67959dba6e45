"""Core configuration and utility modules."""

from .config import load_config, merge_configs, load_session_config
from .logger import setup_logger, setup_from_config

__all__ = [
    'load_config',
    'merge_configs',
    'load_session_config',
    'setup_logger',
    'setup_from_config',
]
