"""
API clients for DealerStructure.
"""

from dealerstructure.clients.massive_client import MassiveClient

__all__ = ["MassiveClient"]
