"""
External service integrations.
"""

from integrations.fulfillment_api import FulfillmentApiClient, get_fulfillment_api

__all__ = [
    "FulfillmentApiClient",
    "get_fulfillment_api",
]
