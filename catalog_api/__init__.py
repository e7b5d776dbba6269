"""Catalog API.

Mirrors a BigCommerce store catalog into a local database and serves
enriched, paginated reads of the mirrored data.
"""
