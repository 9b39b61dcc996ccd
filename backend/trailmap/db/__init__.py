"""Database access, catalog reflection and data models.

This package holds the shared psycopg2 connection pool, the catalog
reflection that builds the immutable table registry at startup, and the
dataclasses describing tables, tiles and topology edges.

Example:
    Build the registry the way the application lifespan does:
        >>> from trailmap.db import catalog, database
        >>> pool = database.get_connection_pool(settings)
        >>> registry = catalog.load_table_registry(pool)
"""
