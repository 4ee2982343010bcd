# SPDX-License-Identifier: Apache-2.0
"""Application services for InvoicePipe."""

from .reconciliation import (
    ReconciliationStatus,
    VoucherReconciliation,
    VoucherReconciliationService,
)
from .reports import MonthlyReport, MonthlyReportService
from .services import BatchReport, InvoiceBatchService, OrderIngestionService
from .submission import SequentialSubmissionOrchestrator, SubmissionBatch, SubmissionSettings
from .tracker import OrderFilterResult, OrderTracker, TrackerStats

__all__ = [
    "BatchReport",
    "InvoiceBatchService",
    "OrderIngestionService",
    "SequentialSubmissionOrchestrator",
    "SubmissionBatch",
    "SubmissionSettings",
    "OrderFilterResult",
    "OrderTracker",
    "TrackerStats",
    "MonthlyReport",
    "MonthlyReportService",
    "ReconciliationStatus",
    "VoucherReconciliation",
    "VoucherReconciliationService",
]
