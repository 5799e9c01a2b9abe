"""
NRIC Identity Gateway API Routes Package
Provides evidence upload and identity endpoints.
"""

from identity_gateway.routes import evidence, identity

__all__ = ['evidence', 'identity']
