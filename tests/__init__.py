"""
DEM viewer test suite

Structure:
- unit/: cache key, metadata store, fetcher, provider adapter, orchestrator, HTTP API
- integration/: live Earth Engine round trip (skipped without a service-account key)
"""
