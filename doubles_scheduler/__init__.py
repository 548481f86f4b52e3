"""Round-robin doubles scheduling engine with a FastAPI/SQLModel front end."""

__version__ = "0.1.0"
