"""Domain layer for clinicsplit application.

Services are resolved lazily so that the database layer can import
clinicsplit.domain.entities without pulling the services in first.
"""

_SERVICES = {
    "PatientService": "clinicsplit.domain.patient",
    "CaseService": "clinicsplit.domain.case",
    "ExpenseService": "clinicsplit.domain.expense",
    "PaymentService": "clinicsplit.domain.payment",
    "ReportService": "clinicsplit.domain.reports",
}

__all__ = list(_SERVICES)


def __getattr__(name):
    if name in _SERVICES:
        from importlib import import_module

        return getattr(import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
