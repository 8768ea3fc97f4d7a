"""wabridge: group management for a WhatsApp Web session, driven by a chat bot and an HTTP API."""

__version__ = "1.0.0"
