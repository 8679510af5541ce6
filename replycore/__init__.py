"""replycore - AI reply generation core."""

__version__ = "1.0.0"
