"""External service clients."""

from src.enquiry_timeline.services.crm_api import CrmApiClient, CrmApiError

__all__ = ["CrmApiClient", "CrmApiError"]
