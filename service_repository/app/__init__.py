"""
Repository read API service package for Backrest.

The service exposes communities, collections, items and bitstreams over
HTTP, negotiating JSON or XML, with an optional response cache in front of
the catalog.

Structure:
- app.main: FastAPI app, routes, cache middleware and control surface.
- app.negotiation: Media type negotiation and JSON/XML rendering.
- app.adapters: Catalog data-access client.
- app.caching: Response cache coordinator and storage backends.
"""
