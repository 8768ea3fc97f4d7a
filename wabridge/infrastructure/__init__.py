"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (Redis, the file system,
HTTP, the console) by implementing the interfaces defined in the domain layer.
"""
