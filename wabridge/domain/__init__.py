"""Domain Layer: value objects, events, errors and the ports the rest of the app depends on."""
