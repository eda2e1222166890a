"""
authx.api.routers

Router package.
"""

# Package marker.
