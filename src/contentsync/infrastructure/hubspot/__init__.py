"""HubSpot CMS API integration."""

from contentsync.infrastructure.hubspot.client import HubSpotClient

__all__ = ["HubSpotClient"]
