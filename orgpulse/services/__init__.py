"""Collection pipeline services: extraction, identity resolution, deduplication, fetching."""
