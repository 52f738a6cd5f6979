"""Business services: ingestion, retrieval and the knowledge-base facade."""
