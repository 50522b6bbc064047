"""
Application-wide constants.
Centralized constants following DRY principle.
"""

# User Roles
class UserRole:
    ADMIN = 'ADMIN'
    OWNER = 'OWNER'
    MANAGER = 'MANAGER'
    SYNDIC = 'SYNDIC'
    CS = 'CS'
    RESIDENT = 'RESIDENT'

    CHOICES = [
        (ADMIN, 'Platform Admin'),
        (OWNER, 'Agency Owner'),
        (MANAGER, 'Manager'),
        (SYNDIC, 'Syndic'),
        (CS, 'Conseil Syndical'),
        (RESIDENT, 'Resident'),
    ]

    # Roles allowed to manage residences, accounting and copro data
    STAFF = [ADMIN, OWNER, MANAGER, SYNDIC]
    # Roles that need an explicit ResidenceAccess grant
    GRANTED = [MANAGER, SYNDIC, CS]


# Agency Types
class AgencyType:
    AGENCY = 'AGENCY'
    SYNDIC = 'SYNDIC'
    BAILLEUR = 'BAILLEUR'

    CHOICES = [
        (AGENCY, 'Property Management Agency'),
        (SYNDIC, 'Syndic'),
        (BAILLEUR, 'Landlord'),
    ]


# Agency Plans
class AgencyPlan:
    FREE = 'FREE'
    BASIC = 'BASIC'
    PRO = 'PRO'
    ENTERPRISE = 'ENTERPRISE'

    CHOICES = [
        (FREE, 'Free'),
        (BASIC, 'Basic'),
        (PRO, 'Pro'),
        (ENTERPRISE, 'Enterprise'),
    ]


class AgencyStatus:
    ACTIVE = 'ACTIVE'
    TRIAL = 'TRIAL'
    SUSPENDED = 'SUSPENDED'

    CHOICES = [
        (ACTIVE, 'Active'),
        (TRIAL, 'Trial'),
        (SUSPENDED, 'Suspended'),
    ]


# Lots
class LotType:
    APARTMENT = 'APARTMENT'
    PARKING = 'PARKING'
    CELLAR = 'CELLAR'
    COMMERCIAL = 'COMMERCIAL'
    OTHER = 'OTHER'

    CHOICES = [
        (APARTMENT, 'Apartment'),
        (PARKING, 'Parking'),
        (CELLAR, 'Cellar'),
        (COMMERCIAL, 'Commercial'),
        (OTHER, 'Other'),
    ]


class LotStatus:
    OCCUPIED = 'OCCUPIED'
    VACANT = 'VACANT'


class OccupancyType:
    OWNER = 'OWNER'
    TENANT = 'TENANT'
    RESIDENT = 'RESIDENT'

    CHOICES = [
        (OWNER, 'Owner'),
        (TENANT, 'Tenant'),
        (RESIDENT, 'Resident'),
    ]


# Tickets
class TicketStatus:
    OPEN = 'OPEN'
    IN_PROGRESS = 'IN_PROGRESS'
    WAITING = 'WAITING'
    RESOLVED = 'RESOLVED'
    CLOSED = 'CLOSED'

    CHOICES = [
        (OPEN, 'Open'),
        (IN_PROGRESS, 'In Progress'),
        (WAITING, 'Waiting'),
        (RESOLVED, 'Resolved'),
        (CLOSED, 'Closed'),
    ]

    ACTIVE = [OPEN, IN_PROGRESS, WAITING]

    TRANSITIONS = {
        OPEN: {IN_PROGRESS, WAITING, RESOLVED, CLOSED},
        IN_PROGRESS: {WAITING, RESOLVED, CLOSED},
        WAITING: {IN_PROGRESS, RESOLVED, CLOSED},
        RESOLVED: {CLOSED, IN_PROGRESS},
        CLOSED: set(),
    }


class TicketPriority:
    LOW = 'LOW'
    MEDIUM = 'MEDIUM'
    HIGH = 'HIGH'
    URGENT = 'URGENT'

    CHOICES = [
        (LOW, 'Low'),
        (MEDIUM, 'Medium'),
        (HIGH, 'High'),
        (URGENT, 'Urgent'),
    ]


class TicketType:
    INCIDENT = 'INCIDENT'
    REQUEST = 'REQUEST'
    COMPLAINT = 'COMPLAINT'

    CHOICES = [
        (INCIDENT, 'Incident'),
        (REQUEST, 'Request'),
        (COMPLAINT, 'Complaint'),
    ]


class TicketScope:
    PRIVATE = 'PRIVATE'
    COMMON = 'COMMON'
    BOTH = 'BOTH'

    CHOICES = [
        (PRIVATE, 'Private area'),
        (COMMON, 'Common area'),
    ]

    CATEGORY_CHOICES = CHOICES + [(BOTH, 'Both')]


# Work orders
class WorkOrderStatus:
    PENDING = 'PENDING'
    SCHEDULED = 'SCHEDULED'
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'

    CHOICES = [
        (PENDING, 'Pending'),
        (SCHEDULED, 'Scheduled'),
        (IN_PROGRESS, 'In Progress'),
        (COMPLETED, 'Completed'),
        (CANCELLED, 'Cancelled'),
    ]

    FINAL = [COMPLETED, CANCELLED]


# Payments
class PaymentType:
    RENT = 'RENT'
    CHARGES = 'CHARGES'
    COPRO_CALL = 'COPRO_CALL'
    WORKS_FUND = 'WORKS_FUND'
    OTHER = 'OTHER'

    CHOICES = [
        (RENT, 'Rent'),
        (CHARGES, 'Charges'),
        (COPRO_CALL, 'Fund call'),
        (WORKS_FUND, 'Works fund'),
        (OTHER, 'Other'),
    ]


class PaymentStatus:
    PENDING = 'PENDING'
    PARTIAL = 'PARTIAL'
    PAID = 'PAID'
    OVERDUE = 'OVERDUE'

    CHOICES = [
        (PENDING, 'Pending'),
        (PARTIAL, 'Partial'),
        (PAID, 'Paid'),
        (OVERDUE, 'Overdue'),
    ]

    UNPAID = [PENDING, PARTIAL, OVERDUE]


class PaymentMethod:
    CARD = 'CARD'
    SEPA = 'SEPA'
    TRANSFER = 'TRANSFER'
    CHECK = 'CHECK'
    CASH = 'CASH'

    CHOICES = [
        (CARD, 'Card'),
        (SEPA, 'SEPA direct debit'),
        (TRANSFER, 'Bank transfer'),
        (CHECK, 'Check'),
        (CASH, 'Cash'),
    ]


# Accounting
class AccountType:
    ASSET = 'ASSET'
    LIABILITY = 'LIABILITY'
    EQUITY = 'EQUITY'
    INCOME = 'INCOME'
    EXPENSE = 'EXPENSE'

    CHOICES = [
        (ASSET, 'Asset'),
        (LIABILITY, 'Liability'),
        (EQUITY, 'Equity'),
        (INCOME, 'Income'),
        (EXPENSE, 'Expense'),
    ]


class JournalType:
    PURCHASE = 'PURCHASE'
    SALES = 'SALES'
    BANK = 'BANK'
    GENERAL = 'GENERAL'

    CHOICES = [
        (PURCHASE, 'Purchases'),
        (SALES, 'Sales'),
        (BANK, 'Bank'),
        (GENERAL, 'General'),
    ]


class EntryStatus:
    DRAFT = 'DRAFT'
    POSTED = 'POSTED'

    CHOICES = [
        (DRAFT, 'Draft'),
        (POSTED, 'Posted'),
    ]


class BudgetStatus:
    DRAFT = 'DRAFT'
    VOTED = 'VOTED'
    CLOSED = 'CLOSED'

    CHOICES = [
        (DRAFT, 'Draft'),
        (VOTED, 'Voted'),
        (CLOSED, 'Closed'),
    ]


class RegularizationStatus:
    PENDING = 'PENDING'
    SENT = 'SENT'
    PAID = 'PAID'

    CHOICES = [
        (PENDING, 'Pending'),
        (SENT, 'Sent'),
        (PAID, 'Paid'),
    ]


# Co-ownership
class CallType:
    QUARTERLY = 'QUARTERLY'
    EXCEPTIONAL = 'EXCEPTIONAL'
    WORKS_FUND = 'WORKS_FUND'

    CHOICES = [
        (QUARTERLY, 'Quarterly'),
        (EXCEPTIONAL, 'Exceptional'),
        (WORKS_FUND, 'Works fund'),
    ]


class CallStatus:
    DRAFT = 'DRAFT'
    SENT = 'SENT'
    PARTIALLY_PAID = 'PARTIALLY_PAID'
    PAID = 'PAID'
    CANCELLED = 'CANCELLED'

    CHOICES = [
        (DRAFT, 'Draft'),
        (SENT, 'Sent'),
        (PARTIALLY_PAID, 'Partially paid'),
        (PAID, 'Paid'),
        (CANCELLED, 'Cancelled'),
    ]


class CallItemStatus:
    PENDING = 'PENDING'
    PARTIAL = 'PARTIAL'
    PAID = 'PAID'

    CHOICES = [
        (PENDING, 'Pending'),
        (PARTIAL, 'Partial'),
        (PAID, 'Paid'),
    ]


GENERAL_DISTRIBUTION_KEY = 'GENERAL'


# Marketplace
class ListingStatus:
    ACTIVE = 'ACTIVE'
    RESERVED = 'RESERVED'
    SOLD = 'SOLD'
    ARCHIVED = 'ARCHIVED'

    CHOICES = [
        (ACTIVE, 'Active'),
        (RESERVED, 'Reserved'),
        (SOLD, 'Sold'),
        (ARCHIVED, 'Archived'),
    ]


class ListingCondition:
    NEW = 'NEW'
    LIKE_NEW = 'LIKE_NEW'
    GOOD = 'GOOD'
    FAIR = 'FAIR'

    CHOICES = [
        (NEW, 'New'),
        (LIKE_NEW, 'Like new'),
        (GOOD, 'Good'),
        (FAIR, 'Fair'),
    ]


# Chat
class ConversationType:
    DIRECT = 'DIRECT'
    GROUP = 'GROUP'
    BROADCAST = 'BROADCAST'

    CHOICES = [
        (DIRECT, 'Direct'),
        (GROUP, 'Group'),
        (BROADCAST, 'Broadcast'),
    ]


class MessageType:
    TEXT = 'TEXT'
    SYSTEM = 'SYSTEM'

    CHOICES = [
        (TEXT, 'Text'),
        (SYSTEM, 'System'),
    ]


# General assemblies
class AssemblyStatus:
    SCHEDULED = 'SCHEDULED'
    VOTING = 'VOTING'
    CLOSED = 'CLOSED'

    CHOICES = [
        (SCHEDULED, 'Scheduled'),
        (VOTING, 'Voting open'),
        (CLOSED, 'Closed'),
    ]


class MajorityRule:
    """
    SIMPLE: more FOR than AGAINST shares among votes cast (article 24)
    ABSOLUTE: FOR shares above half of all residence shares (article 25)
    """
    SIMPLE = 'SIMPLE'
    ABSOLUTE = 'ABSOLUTE'

    CHOICES = [
        (SIMPLE, 'Simple majority'),
        (ABSOLUTE, 'Absolute majority'),
    ]


class VoteChoice:
    FOR = 'FOR'
    AGAINST = 'AGAINST'
    ABSTAIN = 'ABSTAIN'

    CHOICES = [
        (FOR, 'For'),
        (AGAINST, 'Against'),
        (ABSTAIN, 'Abstain'),
    ]


class ResolutionOutcome:
    ADOPTED = 'ADOPTED'
    REJECTED = 'REJECTED'

    CHOICES = [
        (ADOPTED, 'Adopted'),
        (REJECTED, 'Rejected'),
    ]


# Common-area reservations
class ReservationStatus:
    PENDING = 'PENDING'
    CONFIRMED = 'CONFIRMED'
    REJECTED = 'REJECTED'
    CANCELLED = 'CANCELLED'

    CHOICES = [
        (PENDING, 'Pending'),
        (CONFIRMED, 'Confirmed'),
        (REJECTED, 'Rejected'),
        (CANCELLED, 'Cancelled'),
    ]

    # Statuses that hold the slot
    BLOCKING = [PENDING, CONFIRMED]


# Newsfeed
class PostCategory:
    WORKS = 'WORKS'
    DOCUMENTS = 'DOCUMENTS'
    ASSEMBLY = 'ASSEMBLY'
    DAILY_LIFE = 'DAILY_LIFE'

    CHOICES = [
        (WORKS, 'Works'),
        (DOCUMENTS, 'Documents'),
        (ASSEMBLY, 'General assembly'),
        (DAILY_LIFE, 'Daily life'),
    ]


# Audit
class AuditAction:
    CREATE = 'CREATE'
    UPDATE = 'UPDATE'
    DELETE = 'DELETE'
    LOGIN = 'LOGIN'
    LOGOUT = 'LOGOUT'
    GRANT_ACCESS = 'GRANT_ACCESS'
    REVOKE_ACCESS = 'REVOKE_ACCESS'
    PAYMENT = 'PAYMENT'
    ASSIGN_OCCUPANCY = 'ASSIGN_OCCUPANCY'
    VACATE = 'VACATE'
    STATUS_CHANGE = 'STATUS_CHANGE'
    POST_ENTRY = 'POST_ENTRY'
    RECONCILE = 'RECONCILE'
    SEND_CALL = 'SEND_CALL'

    CHOICES = [
        (CREATE, 'Create'),
        (UPDATE, 'Update'),
        (DELETE, 'Delete'),
        (LOGIN, 'Login'),
        (LOGOUT, 'Logout'),
        (GRANT_ACCESS, 'Grant Access'),
        (REVOKE_ACCESS, 'Revoke Access'),
        (PAYMENT, 'Payment'),
        (ASSIGN_OCCUPANCY, 'Assign Occupancy'),
        (VACATE, 'Vacate'),
        (STATUS_CHANGE, 'Status Change'),
        (POST_ENTRY, 'Post Entry'),
        (RECONCILE, 'Reconcile'),
        (SEND_CALL, 'Send Fund Call'),
    ]

    # Shown in the audit summary
    CRITICAL = [DELETE, GRANT_ACCESS, REVOKE_ACCESS, POST_ENTRY]


# Default Limits
class DefaultLimits:
    MAX_RESIDENCES_PER_AGENCY = 10
    MAX_MANAGERS_PER_AGENCY = 5
    RENT_DUE_DAY = 5
    WORKS_FUND_MIN_PERCENTAGE = 5
    MAX_BULK_LOTS = 500
    RECONCILIATION_WINDOW_DAYS = 7


# Pagination
class Pagination:
    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 100
