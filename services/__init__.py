"""Photo ingestion pipeline and its collaborators."""
