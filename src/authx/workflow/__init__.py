"""
authx.workflow

Single-use workflow tokens (account activation, password reset).

Responsibilities:
- Entry model and its entitlement encoding.
- Repository over the user's entitlement list (the only storage for these tokens).
- Engine implementing generate -> resolve -> consume.
"""

# Package marker.
