"""HTTP API for SpotLink.

- routers/: endpoints (currently the /spotify credential flow)
- dependencies.py: FastAPI dependency providers reading app.state
- exception_handlers.py: domain exception -> HTTP status mapping
"""
