from .inventory_service import InventoryService
from .sales_service import SalesService
from .reporting_service import ReportingService
from .auth_service import AuthContext, AuthService, PasswordPolicy

__all__ = [
    "InventoryService",
    "SalesService",
    "ReportingService",
    "AuthContext",
    "AuthService",
    "PasswordPolicy",
]
