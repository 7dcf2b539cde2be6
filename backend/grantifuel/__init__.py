"""
GrantiFuel Client Package

This package contains the client-side state core for GrantiFuel, the grant
discovery and application workspace for musicians, including:

- api_client.py: HTTP wrapper around the GrantiFuel REST API
- query_cache.py: shared query cache keyed by resource path
- auth.py: login session lifecycle
- services/: cache-aware operations for each REST resource
- flows/: multi-step application creation flows
- progress.py: application progress and milestone heuristics
"""

__version__ = "1.0.0"
