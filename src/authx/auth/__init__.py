"""
authx.auth

Authentication/authorization package.

Responsibilities:
- Issuer client (password grant, refresh, introspection).
- Service credential cache with proactive, single-flight refresh.
- Bearer-token authorization gate and its FastAPI dependency.
"""

# Package marker.
