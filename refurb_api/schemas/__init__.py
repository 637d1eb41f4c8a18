"""
Public Pydantic schemas used by FastAPI routes, services, and tests.

Schemas are grouped by workflow area (devices, inspection, coordination, qc, etc.) and also
include common reusable models such as standard and error responses.
"""

from .common import MessageResponse  # noqa: F401
