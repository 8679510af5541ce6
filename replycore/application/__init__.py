"""Application services for replycore."""
