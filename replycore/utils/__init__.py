"""Utility modules for replycore."""

from .config import load_config, get_config_value, Config
from .logger import get_logger, setup_logging

__all__ = ['load_config', 'get_config_value', 'Config', 'get_logger', 'setup_logging']
