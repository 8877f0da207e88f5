"""CineCatalog backend: catalog storage, curation and the HTTP API."""
