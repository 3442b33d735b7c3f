"""
Dashboard Aggregator.

Collects the admin home page figures from independent queries. Every
widget is settled on its own: a failing query is logged and counted,
its widget keeps its zero/empty default, and the remaining widgets are
still returned.
"""
from contextlib import nullcontext
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, ContextManager, Dict, Iterable, List, Optional, Tuple, TypeVar
from uuid import UUID

from pydantic import BaseModel

from kmerbeauty.lib.cancellation import CancellationToken
from kmerbeauty.lib.errors import DataAccessError
from kmerbeauty.lib.logging import get_logger, log_with_context
from kmerbeauty.lib.metrics import get_metrics_collector
from kmerbeauty.models.bookings import Booking
from kmerbeauty.models.users import UserRole
from kmerbeauty.repositories.bookings import BookingRepository
from kmerbeauty.repositories.operations import OperationsRepository
from kmerbeauty.repositories.users import UserRepository


logger = get_logger(__name__)

T = TypeVar("T")

FALLBACK_PROVIDER_NAME = "Un prestataire"
RECENT_ACTIVITY_LIMIT = 5
CHART_DAYS = 7


class DashboardStats(BaseModel):
    total_revenue: Decimal = Decimal(0)
    provider_revenue: Decimal = Decimal(0)
    active_clients: int = 0
    active_providers: int = 0
    pending_providers: int = 0
    recent_activity_count: int = 0
    open_tickets: int = 0
    system_status: str = "operational"


class BestProvider(BaseModel):
    id: Optional[str] = None
    first_name: str = "Unknown"
    last_name: str = "Provider"
    avatar: Optional[str] = None
    total_revenue: Decimal = Decimal(0)
    booking_count: int = 0


class RecentActivity(BaseModel):
    id: UUID
    type: str = "booking"
    description: str
    created_at: Optional[datetime] = None
    status: str


class ChartPoint(BaseModel):
    name: str
    total: Decimal = Decimal(0)


class DashboardSnapshot(BaseModel):
    stats: DashboardStats
    best_provider: Optional[BestProvider] = None
    recent_activity: List[RecentActivity] = []
    chart: List[ChartPoint] = []
    failed_widgets: List[str] = []


def format_xaf(amount: Any) -> str:
    """
    Amount in CFA francs with space-grouped thousands.
    
    >>> format_xaf(15000)
    '15 000 FCFA'
    """
    value = Decimal(amount or 0).quantize(Decimal(1))
    return f"{int(value):,}".replace(",", " ") + " FCFA"


def provider_display_name(booking: Booking) -> str:
    """Therapist's user name, else salon French name, else a generic label."""
    therapist = booking.therapist
    if therapist is not None and therapist.user is not None:
        name = therapist.user.full_name
        if name:
            return name
    if booking.salon is not None and booking.salon.name_fr:
        return booking.salon.name_fr
    return FALLBACK_PROVIDER_NAME


def describe_booking(booking: Booking) -> RecentActivity:
    return RecentActivity(
        id=booking.id,
        description=f"{provider_display_name(booking)} a reçu une commande de {format_xaf(booking.total)}",
        created_at=booking.created_at,
        status=booking.status,
    )


def to_best_provider(row: Optional[Dict[str, Any]]) -> Optional[BestProvider]:
    if not row:
        return None
    return BestProvider(
        id=str(row["id"]) if row.get("id") is not None else None,
        first_name=row.get("first_name") or "Unknown",
        last_name=row.get("last_name") or "Provider",
        avatar=row.get("avatar") or None,
        total_revenue=Decimal(row.get("total_revenue") or 0),
        booking_count=int(row.get("booking_count") or 0),
    )


def chart_window_start(today: date, days: int = CHART_DAYS) -> datetime:
    """UTC midnight of the oldest day shown on the chart."""
    start = today - timedelta(days=days - 1)
    return datetime(start.year, start.month, start.day, tzinfo=timezone.utc)


def bucket_revenue_by_day(
    purchases: Iterable[Tuple[datetime, Any]],
    today: date,
    days: int = CHART_DAYS,
) -> List[ChartPoint]:
    """
    Sum amounts per UTC day over the last `days` days, oldest first.
    
    Days without purchases are present with a zero total; amounts outside
    the window are ignored.
    """
    window = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
    totals: Dict[date, Decimal] = {day: Decimal(0) for day in window}
    for created_at, amount in purchases:
        if created_at.tzinfo is not None:
            created_at = created_at.astimezone(timezone.utc)
        day = created_at.date()
        if day in totals:
            totals[day] += Decimal(amount or 0)
    return [ChartPoint(name=day.strftime("%m-%d"), total=totals[day]) for day in window]


class DashboardAggregator:
    """Builds the admin dashboard snapshot."""
    
    def __init__(
        self,
        users: UserRepository,
        bookings: BookingRepository,
        operations: OperationsRepository,
        savepoint: Optional[Callable[[], ContextManager[Any]]] = None,
    ):
        self.users = users
        self.bookings = bookings
        self.operations = operations
        self.savepoint = savepoint or nullcontext
        self.metrics = get_metrics_collector()
    
    def _settle(
        self,
        widget: str,
        query: Callable[[], T],
        default: T,
        failed: List[str],
        token: CancellationToken,
    ) -> T:
        try:
            with self.savepoint():
                value = query()
        except DataAccessError as exc:
            logger.error(
                f"Dashboard widget failed: {widget}",
                extra={"widget": widget, "kind": exc.kind.value},
            )
            self.metrics.increment_dashboard_widget_failures(widget)
            failed.append(widget)
            value = default
        token.raise_if_cancelled("dashboard")
        return value
    
    def snapshot(
        self,
        now: Optional[datetime] = None,
        token: Optional[CancellationToken] = None,
    ) -> DashboardSnapshot:
        """
        Run every widget query and assemble the dashboard.
        
        Args:
            now: Reference time (UTC), defaults to the current time
            token: Cancellation token of the request
            
        Returns:
            DashboardSnapshot with `failed_widgets` naming the widgets
            left at their default
        """
        token = token or CancellationToken.none()
        now = now or datetime.now(timezone.utc)
        today = now.astimezone(timezone.utc).date()
        failed: List[str] = []
        
        def settle(widget: str, query: Callable[[], T], default: T) -> T:
            return self._settle(widget, query, default, failed, token)
        
        active_clients = settle(
            "active_clients",
            lambda: self.users.count_users(UserRole.CLIENT.value, is_active=True),
            0,
        )
        active_providers = settle(
            "active_providers",
            lambda: self.users.count_users(UserRole.PROVIDER.value, is_active=True),
            0,
        )
        pending_providers = settle(
            "pending_providers",
            lambda: self.users.count_users(UserRole.PROVIDER.value, is_verified=False),
            0,
        )
        total_revenue = settle("total_revenue", self.operations.completed_credit_revenue, Decimal(0))
        provider_revenue = settle("provider_revenue", self.bookings.completed_total, Decimal(0))
        open_tickets = settle("open_tickets", self.operations.count_open_tickets, 0)
        recent_count = settle(
            "recent_activity_count",
            lambda: self.bookings.count_created_since(now - timedelta(days=1)),
            0,
        )
        best_provider = settle("best_provider", lambda: to_best_provider(self.operations.top_provider()), None)
        recent = settle("recent_activity", lambda: self.bookings.latest(RECENT_ACTIVITY_LIMIT), [])
        purchases = settle(
            "revenue_chart",
            lambda: self.operations.completed_purchases_since(chart_window_start(today)),
            [],
        )
        
        if failed:
            log_with_context(logger, "warning", "Dashboard degraded", failed_widgets=failed)
        
        stats = DashboardStats(
            total_revenue=total_revenue,
            provider_revenue=provider_revenue,
            active_clients=active_clients,
            active_providers=active_providers,
            pending_providers=pending_providers,
            recent_activity_count=recent_count,
            open_tickets=open_tickets,
            system_status="degraded" if failed else "operational",
        )
        return DashboardSnapshot(
            stats=stats,
            best_provider=best_provider,
            recent_activity=[describe_booking(booking) for booking in recent],
            chart=bucket_revenue_by_day(purchases, today),
            failed_widgets=failed,
        )
