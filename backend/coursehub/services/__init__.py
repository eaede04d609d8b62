from coursehub.services.auth_service import AuthService
from coursehub.services.catalog_service import CatalogService
from coursehub.services.entitlement_service import EntitlementLedger
from coursehub.services.gateway import PayUGateway
from coursehub.services.payment_service import PaymentService, get_payment_service

__all__ = ["AuthService", "CatalogService", "EntitlementLedger", "PayUGateway", "PaymentService", "get_payment_service"]
