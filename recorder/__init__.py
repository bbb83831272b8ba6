"""Session recorder — event ingestion, storage and replay retrieval."""
