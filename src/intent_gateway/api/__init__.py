"""FastAPI application for the intent gateway."""
