# ================================
# API PACKAGE INITIALIZATION (api/__init__.py)
# ================================

"""
API Package

Root package for all API routes
"""

# Version Info
API_VERSION = "1.0.0"
API_DESCRIPTION = """
Municipal Service Payments API

## Features
- Service fee quotes per payment method and merchant fee profile
- Server-side total validation before any charge
- Time-slot bookings with overlap detection
- Automatic expiry of abandoned draft bookings

## Authentication
The caller id is forwarded by the auth gateway in the `X-User-ID` header.
"""

__all__ = ["API_VERSION", "API_DESCRIPTION"]
