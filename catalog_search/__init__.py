"""Faceted product and brand search on top of Elasticsearch."""
