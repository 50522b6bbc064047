"""
API URLs for Residence Hub
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from agencies.views import AgencyViewSet
from users.views import UserViewSet
from residences.views import ResidenceViewSet, BuildingViewSet, LotViewSet
from occupancy.views import OccupancyViewSet
from tickets.views import TicketCategoryViewSet, TicketViewSet
from maintenance.views import ServiceProviderViewSet, WorkOrderViewSet
from payments.views import PaymentViewSet
from accounting.views import (
    AccountingAccountViewSet,
    AccountingJournalViewSet,
    AccountingEntryViewSet,
    AccountingReportViewSet,
    CoproBudgetViewSet,
    BudgetLineViewSet,
    ChargesRegularizationViewSet,
    BankAccountViewSet,
    BankTransactionViewSet,
)
from copro.views import (
    DistributionKeyViewSet,
    LotShareViewSet,
    CoproCallViewSet,
    CoproCallItemViewSet,
    WorksFundViewSet,
)
from marketplace.views import ListingViewSet
from chat.views import ConversationViewSet
from assemblies.views import GeneralAssemblyViewSet
from reservations.views import CommonAreaViewSet, ReservationViewSet
from newsfeed.views import PostViewSet
from dashboard.views import DashboardViewSet
from audit.views import AuditLogViewSet, audit_summary

# Create router
router = DefaultRouter()
router.register(r'agencies', AgencyViewSet, basename='agency')
router.register(r'users', UserViewSet, basename='user')
router.register(r'residences', ResidenceViewSet, basename='residence')
router.register(r'buildings', BuildingViewSet, basename='building')
router.register(r'lots', LotViewSet, basename='lot')
router.register(r'occupancies', OccupancyViewSet, basename='occupancy')
router.register(r'ticket-categories', TicketCategoryViewSet, basename='ticket-category')
router.register(r'tickets', TicketViewSet, basename='ticket')
router.register(r'service-providers', ServiceProviderViewSet, basename='service-provider')
router.register(r'work-orders', WorkOrderViewSet, basename='work-order')
router.register(r'payments', PaymentViewSet, basename='payment')

# Accounting
router.register(r'accounting/accounts', AccountingAccountViewSet, basename='accounting-account')
router.register(r'accounting/journals', AccountingJournalViewSet, basename='accounting-journal')
router.register(r'accounting/entries', AccountingEntryViewSet, basename='accounting-entry')
router.register(r'accounting/reports', AccountingReportViewSet, basename='accounting-report')
router.register(r'accounting/budgets', CoproBudgetViewSet, basename='budget')
router.register(r'accounting/budget-lines', BudgetLineViewSet, basename='budget-line')
router.register(r'accounting/regularizations', ChargesRegularizationViewSet, basename='regularization')
router.register(r'accounting/bank-accounts', BankAccountViewSet, basename='bank-account')
router.register(r'accounting/bank-transactions', BankTransactionViewSet, basename='bank-transaction')

# Co-ownership
router.register(r'copro/keys', DistributionKeyViewSet, basename='distribution-key')
router.register(r'copro/lot-shares', LotShareViewSet, basename='lot-share')
router.register(r'copro/calls', CoproCallViewSet, basename='copro-call')
router.register(r'copro/call-items', CoproCallItemViewSet, basename='copro-call-item')
router.register(r'copro/works-funds', WorksFundViewSet, basename='works-fund')

router.register(r'listings', ListingViewSet, basename='listing')
router.register(r'conversations', ConversationViewSet, basename='conversation')
router.register(r'assemblies', GeneralAssemblyViewSet, basename='assembly')
router.register(r'common-areas', CommonAreaViewSet, basename='common-area')
router.register(r'reservations', ReservationViewSet, basename='reservation')
router.register(r'posts', PostViewSet, basename='post')
router.register(r'dashboard', DashboardViewSet, basename='dashboard')
router.register(r'audit/logs', AuditLogViewSet, basename='auditlog')

urlpatterns = [
    # JWT Authentication
    path('auth/login/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    path('audit/summary/', audit_summary, name='audit-summary'),

    # API routes
    path('', include(router.urls)),
]
