"""Service layer: routine invocation engine, metadata and data operations."""
