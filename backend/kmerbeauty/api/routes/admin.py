"""
Admin API routes - dashboard and beta test report.

All endpoints require an ADMIN account.
"""
from uuid import UUID

from fastapi import APIRouter, Depends

from kmerbeauty.api.dependencies import (
    get_beta_test_reporter,
    get_dashboard_aggregator,
    require_admin,
)
from kmerbeauty.lib.cancellation import CancellationToken
from kmerbeauty.lib.request_context import get_cancellation_token
from kmerbeauty.services.beta_tests import BetaTestReport, BetaTestReporter
from kmerbeauty.services.dashboard_service import DashboardAggregator, DashboardSnapshot


router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/dashboard", response_model=DashboardSnapshot)
def get_dashboard(
    _: UUID = Depends(require_admin),
    aggregator: DashboardAggregator = Depends(get_dashboard_aggregator),
    token: CancellationToken = Depends(get_cancellation_token),
) -> DashboardSnapshot:
    """
    Home page figures.
    
    Widgets whose query failed keep their default value and are listed
    in `failed_widgets`; `stats.system_status` is then "degraded".
    """
    return aggregator.snapshot(token=token)


@router.get("/beta-tests", response_model=BetaTestReport)
def get_beta_test_report(
    _: UUID = Depends(require_admin),
    reporter: BetaTestReporter = Depends(get_beta_test_reporter),
) -> BetaTestReport:
    """Progress of every tester and the list of broken checks, newest first."""
    return reporter.build_report()
