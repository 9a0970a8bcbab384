"""Event discovery feature: search, scrape, validate, rank and persist local events."""
