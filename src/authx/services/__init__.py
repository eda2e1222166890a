"""
authx.services

Service layer for account workflows.

Responsibilities:
- Registration, activation and password flows built on the workflow token engine.
- Attach user-facing intent to upstream failures.
- Fire notification events after successful transitions.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Services are plain Python over injected collaborators and are tested with
# httpx.MockTransport-backed fakes.
