"""
Elevation imagery cache

- Derives content-addressed keys for (region, width, height) requests
- Keeps a JSON metadata index of rendered artifacts beside the PNG files
- Renders DEM / roads / DEM+roads thumbnails and elevation stats via Earth Engine
- Serves them over FastAPI: POST /api/earthengine/dem, POST /api/earthengine/roads, GET /health
"""
