"""WhatsApp bot that recovers revoked voice notes."""
