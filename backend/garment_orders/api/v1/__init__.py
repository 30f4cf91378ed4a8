"""
API v1 package initialization.

Routers are imported by ``garment_orders.main`` and mounted under the
configured ``api_v1_prefix``.
"""
