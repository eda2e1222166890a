"""
authx.directory

Directory Service (SCIM) boundary.

Responsibilities:
- Filter/patch helpers for the SCIM `/Users` resource.
- Async client authenticated with the service credential cache.
"""

# Package marker.
