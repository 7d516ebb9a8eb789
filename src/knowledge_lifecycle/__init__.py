"""Knowledge lifecycle engine: vector search, duplicate grouping and archival."""
