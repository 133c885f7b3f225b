"""Domain services: catalog scanning, queue ordering and persistence."""
