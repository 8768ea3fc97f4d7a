"""Domain events emitted by the messaging session."""
