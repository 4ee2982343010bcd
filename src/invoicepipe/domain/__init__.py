# SPDX-License-Identifier: Apache-2.0
"""Domain model package for InvoicePipe.

This package contains the core invoicing model:
- Value Objects: Money and the validated identifiers (order number, tax ID, CAE)
- Entities: the Order aggregate and the Invoice derived from it
- Results: submission outcomes and the closed failure union
- Domain Services: eligibility and invoice-date rules
- Ports: interfaces to the transport, the order source and the store

The domain layer is the heart of the application and stays independent of
infrastructure concerns.
"""

from .calculator import InvoiceAmounts, InvoiceCalculator
from .entities import Invoice, Order, ProcessingOutcome
from .errors import (
    ConfigurationError,
    CurrencyMismatchError,
    DomainError,
    InvoicePipeError,
    OrderSourceError,
    TransportError,
    ValidationError,
)
from .events import (
    DomainEvent,
    IEventPublisher,
    InvoiceBatchCompleted,
    InvoiceIssued,
    InvoiceSubmissionFailed,
    ManualInvoiceRecorded,
)
from .ports import IInvoicingTransport, IOrderSource, TransportResponse
from .results import (
    AuthorityRejection,
    InvoiceResult,
    PersistenceFailure,
    SubmissionFailure,
    TransportFailure,
    ValidationFailure,
)
from .services import (
    EligibilityDecision,
    EligibilityReason,
    InvoiceDateCalculator,
    OrderEligibilityPolicy,
)
from .value_objects import (
    AuthorizationCode,
    DocumentType,
    InvoiceConcept,
    InvoiceType,
    Money,
    OrderNumber,
    ProcessingMethod,
    TaxId,
    TradeDirection,
)

__all__ = [
    # Value Objects
    "Money",
    "OrderNumber",
    "TaxId",
    "AuthorizationCode",
    "TradeDirection",
    "ProcessingMethod",
    "InvoiceConcept",
    "InvoiceType",
    "DocumentType",
    # Entities
    "Order",
    "Invoice",
    "ProcessingOutcome",
    # Results
    "InvoiceResult",
    "SubmissionFailure",
    "ValidationFailure",
    "AuthorityRejection",
    "TransportFailure",
    "PersistenceFailure",
    # Services
    "InvoiceAmounts",
    "InvoiceCalculator",
    "InvoiceDateCalculator",
    "OrderEligibilityPolicy",
    "EligibilityDecision",
    "EligibilityReason",
    # Events
    "DomainEvent",
    "IEventPublisher",
    "InvoiceIssued",
    "InvoiceSubmissionFailed",
    "ManualInvoiceRecorded",
    "InvoiceBatchCompleted",
    # Ports
    "IInvoicingTransport",
    "IOrderSource",
    "TransportResponse",
    # Errors
    "InvoicePipeError",
    "ValidationError",
    "DomainError",
    "CurrencyMismatchError",
    "ConfigurationError",
    "TransportError",
    "OrderSourceError",
]
