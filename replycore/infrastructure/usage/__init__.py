"""Usage logging."""

from .logger import JsonlUsageSink, MemoryUsageSink, UsageLogger, create_usage_logger

__all__ = ['UsageLogger', 'MemoryUsageSink', 'JsonlUsageSink', 'create_usage_logger']
