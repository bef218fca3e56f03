"""Period aggregation state and its SQLite persistence."""
