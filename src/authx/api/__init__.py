"""
authx.api

HTTP API package (FastAPI).

Responsibilities:
- App factory and lifespan wiring of shared collaborators.
- Routers for user CRUD and account workflows.
- Mapping of the error taxonomy to HTTP responses.
"""

# Package marker.
