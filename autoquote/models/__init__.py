"""Database models — re-exports all models.

Import from here:  from autoquote.models import User, Quotation, ...
Or from submodules: from autoquote.models.quotations import Quotation
"""

from .base import Base  # noqa: F401

# Auth, Users & Companies
from .auth import Company, CompanyUser, User  # noqa: F401

# Vehicles & Parts
from .vehicles import Part, Vehicle  # noqa: F401

# Suppliers
from .suppliers import Specialization, Supplier  # noqa: F401

# Quotation lifecycle
from .quotations import CounterOffer, Quotation, QuotationRequest  # noqa: F401

# Purchase Orders
from .orders import PurchaseOrder, PurchaseOrderItem  # noqa: F401

# Per-user configuration
from .config import (  # noqa: F401
    MessageTemplate,
    TextAbbreviation,
    WhatsAppConfig,
    Workshop,
)
