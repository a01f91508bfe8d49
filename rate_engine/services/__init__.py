"""Services — RateCardService, AuditService."""

from rate_engine.services.audit_service import AuditService
from rate_engine.services.rate_card_service import RateCardService

__all__ = ["AuditService", "RateCardService"]
