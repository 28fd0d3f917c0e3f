"""
Reporting: read-time aggregation over the document corpus.
"""

from invoicebook.reports.dashboard import build_dashboard, paid_date
from invoicebook.reports.financial import (
    AGING_BUCKETS,
    aging_report,
    build_financial_overview,
    choose_granularity,
    monthly_revenue,
    period_summary,
    previous_period_comparison,
    status_breakdown,
    time_series,
    vat_breakdown,
    year_to_date,
)
from invoicebook.reports.periods import (
    current_quarter_range,
    previous_range,
    quarter_from_month,
    quarter_range,
    resolve_date_range,
)

__all__ = [
    "AGING_BUCKETS",
    "aging_report",
    "build_dashboard",
    "build_financial_overview",
    "choose_granularity",
    "current_quarter_range",
    "monthly_revenue",
    "paid_date",
    "period_summary",
    "previous_period_comparison",
    "previous_range",
    "quarter_from_month",
    "quarter_range",
    "resolve_date_range",
    "status_breakdown",
    "time_series",
    "vat_breakdown",
    "year_to_date",
]
