from enum import Enum, IntEnum


class AppID(IntEnum):
    ADMIN = 1
    VENDOR = 2
    PUBLIC = 3


class OrderIn(IntEnum):
    ASC = 1
    DESC = 2


class PlatformType(IntEnum):
    OTHER = 1
    WEB = 2
    NATIVE = 3
    SERVER = 4


class AccountStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class AdminRole(str, Enum):
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class ServiceType(str, Enum):
    BUS = "bus"
    HOTEL = "hotel"
    PHARMACY = "pharmacy"
    STORE = "store"


class BusinessStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    SUSPENDED = "suspended"


class VendorRole(str, Enum):
    MANAGER = "manager"
    ADMIN = "admin"
    RECEPTIONIST = "receptionist"
    HOUSEKEEPING = "housekeeping"
    CASHIER = "cashier"
    INVENTORY_MANAGER = "inventory_manager"
    SALES_ASSOCIATE = "sales_associate"
    PHARMACIST = "pharmacist"
    TECHNICIAN = "technician"
    DRIVER = "driver"
    CONDUCTOR = "conductor"
    TICKET_SELLER = "ticket_seller"
    DISPATCHER = "dispatcher"
    MAINTENANCE = "maintenance"


class BusStaffRole(str, Enum):
    DRIVER = "driver"
    CONDUCTOR = "conductor"
    TICKET_SELLER = "ticket_seller"
    DISPATCHER = "dispatcher"
    MAINTENANCE = "maintenance"
    ADMIN = "admin"


class DispatchStatus(str, Enum):
    SCHEDULED = "scheduled"
    BOARDING = "boarding"
    DEPARTED = "departed"
    IN_TRANSIT = "in_transit"
    ARRIVED = "arrived"
    DELAYED = "delayed"
    CANCELLED = "cancelled"


class PassengerStatus(str, Enum):
    CONFIRMED = "confirmed"
    ONBOARD = "onboard"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


class MaintenanceStatus(str, Enum):
    GOOD = "good"
    NEEDS_CHECK = "needs_check"
    MAINTENANCE_REQUIRED = "maintenance_required"


class BusStatus(str, Enum):
    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    INACTIVE = "inactive"


class RouteStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    MOBILE_MONEY = "mobile_money"
    BANK_TRANSFER = "bank_transfer"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentSource(str, Enum):
    BOOKING = "booking"
    TICKET = "ticket"
    DISPATCH = "dispatch"


class PlanType(str, Enum):
    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class BillingCycle(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    PENDING = "pending"


class SubscriptionPaymentMethod(str, Enum):
    CARD = "card"
    MOBILE_MONEY = "mobile_money"
    BANK_TRANSFER = "bank_transfer"


class SubscriptionPaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class GatewayPaymentType(str, Enum):
    MOBILE_MONEY = "mobile_money"
    CARD = "card"


class GatewayStatus(str, Enum):
    SUCCESSFUL = "Successful"
    FAILED = "Failed"
    PENDING = "Pending"
    CANCELLED = "Cancelled"


class BillingStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class ComplianceType(str, Enum):
    LICENSE_RENEWAL = "license_renewal"
    INSPECTION = "inspection"
    AUDIT = "audit"
    TRAINING = "training"
    CERTIFICATION = "certification"
    OTHER = "other"


class ComplianceStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class CompliancePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ComplianceReportStatus(str, Enum):
    APPROVED = "approved"
    UNDER_REVIEW = "under_review"
    REJECTED = "rejected"


class PrescriptionStatus(str, Enum):
    PENDING = "pending"
    DISPENSED = "dispensed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class PrescriptionType(str, Enum):
    ONLINE = "online"
    PHYSICAL = "physical"


class SettingSection(str, Enum):
    GENERAL = "general"
    SECURITY = "security"
    EMAIL = "email"
    PAYMENT = "payment"
    NOTIFICATIONS = "notifications"
    MAINTENANCE = "maintenance"
