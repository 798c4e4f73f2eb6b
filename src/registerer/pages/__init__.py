"""Page adapters for the two web services: Minerva (portal) and VSB (availability)."""

from registerer.pages.availability import AvailabilitySession
from registerer.pages.portal import PortalSession

__all__ = ["AvailabilitySession", "PortalSession"]
