"""
Core application utilities for settings, logging, security and FastAPI dependencies.

This package provides:
- Application-level settings (separate from DB settings)
- Bearer token decoding into a Principal
- The domain error taxonomy
- Dependency helpers (DB session, current principal, role checks)
"""
