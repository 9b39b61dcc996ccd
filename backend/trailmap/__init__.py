"""Trailmap: PostGIS vector tiles and loop routes over registered tables.

This package contains the backend service that exposes a PostGIS database
over two capabilities:

- Vector tiles: any registered table is served as MVT tiles, reprojected to
  EPSG:3857 (Web Mercator) and clipped by PostGIS at request time.
- Loop routes: the topology edges around a starting point are extracted,
  an external solver finds a circuit within a distance budget, and the
  solver's node sequences are reconstructed into GeoJSON geometry.

Table metadata is reflected from the database catalog once at startup into
an immutable registry shared by every request.

See README and module sub-docstrings for details on architecture and usage.
"""
