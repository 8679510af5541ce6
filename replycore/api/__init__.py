"""HTTP API for replycore."""
