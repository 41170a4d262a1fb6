from secrets import token_hex
from sqlalchemy import (
    JSON,
    TEXT,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    create_engine,
    func,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.dialects.postgresql import JSONB

from vendorhub.src.constants import (
    PSQL_DB_DRIVER,
    PSQL_DB_HOST,
    PSQL_DB_PASSWORD,
    PSQL_DB_NAME,
    PSQL_DB_PORT,
    PSQL_DB_USERNAME,
)
from vendorhub.src.enums import (
    AccountStatus,
    AdminRole,
    BillingStatus,
    BusinessStatus,
    BusStatus,
    ComplianceStatus,
    CompliancePriority,
    DispatchStatus,
    MaintenanceStatus,
    PassengerStatus,
    PaymentSource,
    PaymentStatus,
    PlanType,
    PlatformType,
    PrescriptionStatus,
    PrescriptionType,
    RouteStatus,
    SubscriptionPaymentStatus,
    SubscriptionStatus,
    VendorRole,
    BillingCycle,
)


# Global DBMS variables
dbURL = f"{PSQL_DB_DRIVER}://{PSQL_DB_USERNAME}:{PSQL_DB_PASSWORD}@{PSQL_DB_HOST}:{PSQL_DB_PORT}/{PSQL_DB_NAME}"
engine = create_engine(url=dbURL, echo=False)
sessionMaker = sessionmaker(bind=engine, expire_on_commit=False)
ORMbase = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


# ----------------------------------- Platform DB Models --------------------------------------#
class Admin(ORMbase):
    """
    Represents a platform administrator, the operators of the marketplace
    itself rather than of any single business.

    Columns:
        id (Integer):
            Primary key. Unique identifier for the admin.

        username (String(32)):
            Unique username used for login.
            It should start with an alphabet and be 4-32 characters long.

        password (TEXT):
            Argon2 hash of the password. Plaintext is never stored.

        full_name (TEXT):
            Optional display name.

        role (String(16)):
            `admin` or `super_admin`. Both may manage settings, plans,
            businesses and compliance reports.

        status (String(16)):
            Account status mapped from `AccountStatus`. Only active admins
            can obtain tokens.

        updated_on (DateTime):
            Timestamp automatically updated whenever the record is modified.

        created_on (DateTime):
            Timestamp of when the account was created.
    """

    __tablename__ = "admin"

    id = Column(Integer, primary_key=True)
    username = Column(String(32), nullable=False, unique=True)
    password = Column(TEXT, nullable=False)
    full_name = Column(TEXT)
    role = Column(String(16), nullable=False, default=AdminRole.ADMIN)
    status = Column(String(16), nullable=False, default=AccountStatus.ACTIVE)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class AdminToken(ORMbase):
    """
    Represents an authentication token issued to an admin.

    Columns:
        id (Integer):
            Primary key.

        admin_id (Integer):
            Foreign key referencing `admin.id`, indexed.
            Cascades on delete.

        access_token (String(64)):
            Unique, securely generated 64-character hexadecimal access token.

        expires_in (Integer):
            Token lifetime in seconds.

        expires_at (DateTime):
            Date and time after which the token becomes invalid.

        platform_type (Integer):
            Client platform mapped from `PlatformType`.

        client_details (TEXT):
            Optional description of the client (user agent, app version...).

        updated_on (DateTime):
            Timestamp automatically updated on refresh.

        created_on (DateTime):
            Timestamp indicating when the token was issued.
    """

    __tablename__ = "admin_token"

    id = Column(Integer, primary_key=True)
    admin_id = Column(
        Integer,
        ForeignKey("admin.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    access_token = Column(
        String(64), unique=True, nullable=False, default=lambda: token_hex(32)
    )
    expires_in = Column(Integer, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    # Device related details
    platform_type = Column(Integer, default=PlatformType.OTHER)
    client_details = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class PlatformSetting(ORMbase):
    """
    One section of the platform configuration document.

    Columns:
        id (Integer):
            Primary key.

        section (String(32)):
            Section name mapped from `SettingSection`, unique.

        value (JSON):
            The section document. Missing keys fall back to the defaults in
            `DEFAULT_PLATFORM_SETTINGS`.

        updated_by (Integer):
            The admin who saved the section last.
    """

    __tablename__ = "platform_setting"

    id = Column(Integer, primary_key=True)
    section = Column(String(32), nullable=False, unique=True)
    value = Column(JSONType, nullable=False, default=dict)
    updated_by = Column(Integer, ForeignKey("admin.id", ondelete="SET NULL"))
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class SubscriptionPlan(ORMbase):
    """
    A billing plan offered to the businesses of one vertical.

    The limit columns are generic across verticals. For the bus vertical they
    are interpreted as: routes = `max_loans`, buses = `max_users`,
    staff = `max_staff_accounts`, and bookings / passengers / dispatches as
    multiples (100 / 1000 / 50) of `max_storage`.

    Columns:
        id (Integer):
            Primary key.

        name (String(64)):
            Display name of the plan.

        description (TEXT):
            Optional marketing description.

        vendor_type (String(16)):
            The `ServiceType` the plan is sold to.

        plan_type (String(16)):
            `basic`, `premium` or `enterprise`.

        price (Numeric(12, 2)):
            Price per billing cycle.

        currency (String(8)):
            ISO currency code, defaults to ZMW.

        billing_cycle (String(16)):
            Default billing cycle of the plan.

        features (JSON):
            List of feature descriptions.

        max_users, max_loans, max_storage, max_staff_accounts (Integer):
            Generic usage limits (see above).

        is_active (Boolean):
            Inactive plans can not be subscribed to.

        is_popular (Boolean):
            Highlight flag for the plan catalogue.

        sort_order (Integer):
            Position in the plan catalogue, ascending.
    """

    __tablename__ = "subscription_plan"

    id = Column(Integer, primary_key=True)
    name = Column(String(64), nullable=False)
    description = Column(TEXT)
    vendor_type = Column(String(16), nullable=False, index=True)
    plan_type = Column(String(16), nullable=False, default=PlanType.BASIC)
    price = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(8), nullable=False, default="ZMW")
    billing_cycle = Column(String(16), nullable=False, default=BillingCycle.MONTHLY)
    features = Column(JSONType, nullable=False, default=list)
    # Limits
    max_users = Column(Integer, nullable=False, default=0)
    max_loans = Column(Integer, nullable=False, default=0)
    max_storage = Column(Integer, nullable=False, default=0)
    max_staff_accounts = Column(Integer, nullable=False, default=0)
    # Catalogue
    is_active = Column(Boolean, nullable=False, default=True)
    is_popular = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, nullable=False, default=0)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


# ----------------------------------- Tenant DB Models ----------------------------------------#
class Business(ORMbase):
    """
    Represents a tenant of the platform: a bus company, hotel, pharmacy or
    store. Every tenant owned record references it through `business_id`.

    Columns:
        id (Integer):
            Primary key.

        name (String(64)):
            Registered name of the business, unique.

        service_type (String(16)):
            Vertical of the business mapped from `ServiceType`.
            Decides which vendor endpoints its accounts may use.

        status (String(16)):
            `active`, `pending` or `suspended`. Accounts of a non-active
            business can not log in.

        contact_person, phone_number, email_id, address (TEXT):
            Optional contact details.
    """

    __tablename__ = "business"

    id = Column(Integer, primary_key=True)
    name = Column(String(64), nullable=False, unique=True)
    service_type = Column(String(16), nullable=False, index=True)
    status = Column(String(16), nullable=False, default=BusinessStatus.ACTIVE)
    # Contact details
    contact_person = Column(TEXT)
    phone_number = Column(TEXT)
    email_id = Column(TEXT)
    address = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Vendor(ORMbase):
    """
    Represents an account of a business: its manager or one of its staff
    members (drivers, conductors, pharmacists...).

    Columns:
        id (Integer):
            Primary key.

        business_id (Integer):
            Foreign key referencing `business.id`. Cascades on delete.

        username (String(32)):
            Login name, unique within the business.

        password (TEXT):
            Argon2 hash of the password.

        full_name (TEXT):
            Display name.

        role (String(32)):
            Role mapped from `VendorRole`. Endpoint access is granted by
            role name.

        status (String(16)):
            `active`, `inactive` or `suspended`.

        phone_number (TEXT), email_id (TEXT):
            Optional contact details.

        employee_id (String(32)), license_number (String(32)):
            Optional staff identifiers (driving or pharmacy license).

        hire_date (DateTime):
            Optional employment start date.
    """

    __tablename__ = "vendor"
    __table_args__ = (UniqueConstraint("username", "business_id"),)

    id = Column(Integer, primary_key=True)
    business_id = Column(
        Integer,
        ForeignKey("business.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    username = Column(String(32), nullable=False)
    password = Column(TEXT, nullable=False)
    full_name = Column(TEXT)
    role = Column(String(32), nullable=False, default=VendorRole.MANAGER)
    status = Column(String(16), nullable=False, default=AccountStatus.ACTIVE)
    # Contact details
    phone_number = Column(TEXT)
    email_id = Column(TEXT)
    # Staff details
    employee_id = Column(String(32))
    license_number = Column(String(32))
    hire_date = Column(DateTime(timezone=True))
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class VendorToken(ORMbase):
    """
    Represents an authentication token issued to a vendor account.

    Columns:
        id (Integer):
            Primary key.

        business_id (Integer):
            Foreign key referencing the business of the vendor.
            Cascades on delete.

        vendor_id (Integer):
            Foreign key referencing `vendor.id`, indexed. Cascades on delete.

        access_token (String(64)):
            Unique, securely generated 64-character hexadecimal access token.

        expires_in (Integer):
            Token lifetime in seconds.

        expires_at (DateTime):
            Date and time after which the token becomes invalid.

        platform_type (Integer):
            Client platform mapped from `PlatformType`.

        client_details (TEXT):
            Optional description of the client.
    """

    __tablename__ = "vendor_token"

    id = Column(Integer, primary_key=True)
    business_id = Column(
        Integer,
        ForeignKey("business.id", ondelete="CASCADE"),
        nullable=False,
    )
    vendor_id = Column(
        Integer,
        ForeignKey("vendor.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    access_token = Column(
        String(64), unique=True, nullable=False, default=lambda: token_hex(32)
    )
    expires_in = Column(Integer, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    # Device related details
    platform_type = Column(Integer, default=PlatformType.OTHER)
    client_details = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Subscription(ORMbase):
    """
    A plan association of a business together with its payment state.

    Columns:
        id (Integer):
            Primary key.

        subscription_id (String(48)):
            Public identifier, `SUB-<epoch ms>-<random>`.

        business_id (Integer):
            Foreign key referencing `business.id`. Cascades on delete.

        plan_id (Integer):
            Foreign key referencing `subscription_plan.id`.

        service_type (String(16)):
            Vertical of the business at subscription time.

        status (String(16)):
            `pending`, `active`, `inactive`, `cancelled` or `expired`.
            Driven by the payment gateway (upgrade, poll and webhook) and
            by the cleaner for expiry.

        billing_cycle (String(16)):
            `monthly`, `quarterly` or `yearly`.

        start_date, end_date, next_billing_date (DateTime):
            Current billing period. `end_date` is `start_date` plus the
            billing cycle.

        auto_renew (Boolean):
            Whether the subscription should be renewed at `end_date`.

        amount (Numeric(12, 2)), currency (String(8)):
            Charged amount per period.

        payment_method (String(16)):
            `card`, `mobile_money` or `bank_transfer`.

        payment_status (String(16)):
            `pending`, `paid`, `failed` or `refunded`.

        transaction_id (String(64)):
            Gateway transaction identifier, indexed.

        external_id (String(64)):
            Our reference sent to the gateway.

        usage (JSON):
            Last computed usage counters: routes, buses, bookings,
            passengers, dispatches and staff.
    """

    __tablename__ = "subscription"

    id = Column(Integer, primary_key=True)
    subscription_id = Column(String(48), nullable=False, unique=True)
    business_id = Column(
        Integer,
        ForeignKey("business.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    plan_id = Column(
        Integer,
        ForeignKey("subscription_plan.id", ondelete="RESTRICT"),
        nullable=False,
    )
    service_type = Column(String(16), nullable=False)
    status = Column(String(16), nullable=False, default=SubscriptionStatus.PENDING)
    billing_cycle = Column(String(16), nullable=False, default=BillingCycle.MONTHLY)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    next_billing_date = Column(DateTime(timezone=True))
    auto_renew = Column(Boolean, nullable=False, default=True)
    # Payment details
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(8), nullable=False, default="ZMW")
    payment_method = Column(String(16))
    payment_status = Column(
        String(16), nullable=False, default=SubscriptionPaymentStatus.PENDING
    )
    transaction_id = Column(String(64), index=True)
    external_id = Column(String(64))
    usage = Column(JSONType, nullable=False, default=dict)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class BillingRecord(ORMbase):
    """
    One invoice of a subscription.

    Columns:
        id (Integer):
            Primary key.

        invoice_number (String(48)):
            Public identifier, `INV-<epoch ms>-<random>`, unique.

        business_id (Integer), subscription_id (Integer):
            Owning business and subscription. Cascade on delete.

        amount (Numeric(12, 2)), currency (String(8)):
            Invoiced amount.

        status (String(16)):
            `pending`, `paid`, `failed`, `refunded` or `cancelled`.

        billing_date, due_date, payment_date (DateTime):
            Invoice dates. `payment_date` is set once the gateway confirms.

        payment_method (String(16)), transaction_id (String(64)),
        external_id (String(64)):
            Gateway payment details. `transaction_id` is used by the webhook
            to find the record.
    """

    __tablename__ = "billing_record"

    id = Column(Integer, primary_key=True)
    invoice_number = Column(String(48), nullable=False, unique=True)
    business_id = Column(
        Integer,
        ForeignKey("business.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subscription_id = Column(
        Integer,
        ForeignKey("subscription.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(8), nullable=False, default="ZMW")
    status = Column(String(16), nullable=False, default=BillingStatus.PENDING)
    billing_date = Column(DateTime(timezone=True), nullable=False)
    due_date = Column(DateTime(timezone=True), nullable=False)
    payment_date = Column(DateTime(timezone=True))
    payment_method = Column(String(16))
    transaction_id = Column(String(64), index=True)
    external_id = Column(String(64))
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


# ----------------------------------- Bus DB Models -------------------------------------------#
class Bus(ORMbase):
    """
    Represents a bus of a bus company's fleet.

    Columns:
        id (Integer):
            Primary key.

        business_id (Integer):
            Foreign key referencing the owning business. Cascades on delete.

        name (String(32)):
            Display name of the bus.

        number_plate (String(16)):
            Vehicle number plate, unique per business.

        seats (Integer):
            Number of passenger seats, 1 to 120.

        bus_type (String(32)):
            Free text category (standard, luxury, mini bus...).

        has_ac (Boolean):
            Whether the bus is air conditioned.

        image (TEXT):
            Optional picture URL.

        status (String(16)):
            `active`, `maintenance` or `inactive`.
    """

    __tablename__ = "bus"
    __table_args__ = (UniqueConstraint("number_plate", "business_id"),)

    id = Column(Integer, primary_key=True)
    business_id = Column(
        Integer,
        ForeignKey("business.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(32), nullable=False)
    number_plate = Column(String(16), nullable=False, index=True)
    seats = Column(Integer, nullable=False)
    bus_type = Column(String(32), nullable=False)
    has_ac = Column(Boolean, nullable=False, default=False)
    image = Column(TEXT)
    status = Column(String(16), nullable=False, default=BusStatus.ACTIVE)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Route(ORMbase):
    """
    Represents a route operated by a bus company.

    Columns:
        id (Integer):
            Primary key.

        business_id (Integer):
            Foreign key referencing the owning business. Cascades on delete.

        name (String(64)):
            Display name, e.g. `Lusaka - Ndola`.

        stops (JSON):
            Ordered list of `{stop_id, stop_name, order}`. At least two stops.

        fare_segments (JSON):
            List of `{fare_id, from, to, amount}` between two stops.

        total_distance (Numeric(10, 2)):
            Optional length in kilometres.

        is_bidirectional (Boolean):
            Whether the route is also served in the reverse direction.

        status (String(16)):
            `active` or `inactive`.
    """

    __tablename__ = "route"

    id = Column(Integer, primary_key=True)
    business_id = Column(
        Integer,
        ForeignKey("business.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(64), nullable=False)
    stops = Column(JSONType, nullable=False, default=list)
    fare_segments = Column(JSONType, nullable=False, default=list)
    total_distance = Column(Numeric(10, 2))
    is_bidirectional = Column(Boolean, nullable=False, default=True)
    status = Column(String(16), nullable=False, default=RouteStatus.ACTIVE)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class DispatchPassenger(ORMbase):
    """
    A passenger travelling with a dispatch.

    Columns:
        id (Integer):
            Primary key.

        dispatch_id (Integer):
            Foreign key referencing `dispatch.id`. Cascades on delete.

        name (TEXT), phone_number (TEXT):
            Passenger details.

        seat_number (String(8)):
            Optional seat label.

        booking_reference (String(48)):
            Optional reference of the booking or ticket.

        status (String(16)):
            `confirmed`, `onboard`, `completed` or `no_show`.
    """

    __tablename__ = "dispatch_passenger"

    id = Column(Integer, primary_key=True)
    dispatch_id = Column(
        Integer,
        ForeignKey("dispatch.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(TEXT, nullable=False)
    phone_number = Column(TEXT)
    seat_number = Column(String(8))
    booking_reference = Column(String(48))
    status = Column(String(16), nullable=False, default=PassengerStatus.CONFIRMED)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Dispatch(ORMbase):
    """
    One departure of a bus on a trip, optionally carrying a parcel
    consignment, together with its passengers.

    Columns:
        id (Integer):
            Primary key.

        dispatch_id (String(48)):
            Public identifier, `DISP-<epoch ms>-<random>`, unique.

        business_id (Integer):
            Foreign key referencing the owning business. Cascades on delete.

        trip_id (String(48)), trip_name (TEXT), route_name (TEXT):
            Trip reference and its denormalised names.

        bus_id (Integer), bus_name (TEXT), bus_number (TEXT):
            The bus and its denormalised name and number plate. `bus_id`
            usually references the fleet of the business but is not
            constrained to it, buses hired from outside keep their own ids.

        driver_id, conductor_id (Integer), driver_name, conductor_name (TEXT):
            Optional crew, referencing vendor accounts.

        departure_date (DateTime), departure_time (String(5)):
            Scheduled departure day and `HH:MM` clock time.

        actual_departure, actual_arrival (DateTime):
            Set when the dispatch reaches `departed` and `arrived`.

        status (String(16)):
            `scheduled → boarding → departed → in_transit → arrived` with
            the side states `delayed` and `cancelled`.

        dispatch_stop (TEXT), receiver_contact (TEXT),
        parcel_description (TEXT), parcel_value (Numeric(12, 2)):
            Parcel consignment details.

        billed_price (Numeric(12, 2)):
            Amount billed for the dispatch, counted as cash revenue once
            the dispatch arrived.

        maintenance_status (String(24)):
            `good`, `needs_check` or `maintenance_required`.

        total_passengers, onboard_passengers, completed_passengers,
        no_show_passengers (Integer):
            Passenger counters, recomputed from `passengers` on every
            passenger mutation.

        notes (TEXT):
            Free text.

        dispatched_by (Integer), dispatched_by_name (TEXT):
            The vendor account which created the dispatch.
    """

    __tablename__ = "dispatch"

    id = Column(Integer, primary_key=True)
    dispatch_id = Column(String(48), nullable=False, unique=True)
    business_id = Column(
        Integer,
        ForeignKey("business.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Trip
    trip_id = Column(String(48), nullable=False)
    trip_name = Column(TEXT, nullable=False)
    route_name = Column(TEXT, nullable=False)
    # Bus & crew
    bus_id = Column(Integer, index=True)
    bus_name = Column(TEXT, nullable=False)
    bus_number = Column(TEXT)
    driver_id = Column(Integer, ForeignKey("vendor.id", ondelete="SET NULL"))
    driver_name = Column(TEXT)
    conductor_id = Column(Integer, ForeignKey("vendor.id", ondelete="SET NULL"))
    conductor_name = Column(TEXT)
    # Schedule
    departure_date = Column(DateTime(timezone=True), nullable=False, index=True)
    departure_time = Column(String(5))
    actual_departure = Column(DateTime(timezone=True))
    actual_arrival = Column(DateTime(timezone=True))
    status = Column(String(16), nullable=False, default=DispatchStatus.SCHEDULED)
    # Parcel
    dispatch_stop = Column(TEXT)
    receiver_contact = Column(TEXT)
    parcel_description = Column(TEXT)
    parcel_value = Column(Numeric(12, 2))
    billed_price = Column(Numeric(12, 2), nullable=False, default=0)
    maintenance_status = Column(
        String(24), nullable=False, default=MaintenanceStatus.GOOD
    )
    # Passenger counters
    total_passengers = Column(Integer, nullable=False, default=0)
    onboard_passengers = Column(Integer, nullable=False, default=0)
    completed_passengers = Column(Integer, nullable=False, default=0)
    no_show_passengers = Column(Integer, nullable=False, default=0)
    notes = Column(TEXT)
    dispatched_by = Column(Integer, ForeignKey("vendor.id", ondelete="SET NULL"))
    dispatched_by_name = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())

    passengers = relationship(
        DispatchPassenger,
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by=DispatchPassenger.id,
    )


class BusPayment(ORMbase):
    """
    A customer payment for a bus booking or ticket.

    Columns:
        id (Integer):
            Primary key.

        payment_id (String(48)):
            Public identifier, `PAY-<epoch ms>-<random>`, unique.

        business_id (Integer):
            Foreign key referencing the owning business. Cascades on delete.

        customer_id (String(48)), customer_name (TEXT),
        customer_email (TEXT), customer_phone (TEXT):
            The paying customer.

        amount (Numeric(12, 2)):
            Paid amount, greater than zero.

        payment_method (String(16)):
            `cash`, `card`, `mobile_money` or `bank_transfer`.

        status (String(16)):
            `pending`, `completed`, `failed` or `refunded`.

        source (String(16)):
            `booking` or `ticket`.

        trip_id (String(48)), trip_name (TEXT), route_name (TEXT),
        bus_id (Integer), bus_name (TEXT), departure_date (DateTime):
            Trip the payment is for.

        transaction_id (String(64)):
            Optional reference of the payment processor.
    """

    __tablename__ = "bus_payment"

    id = Column(Integer, primary_key=True)
    payment_id = Column(String(48), nullable=False, unique=True)
    business_id = Column(
        Integer,
        ForeignKey("business.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    customer_id = Column(String(48), nullable=False)
    customer_name = Column(TEXT, nullable=False)
    customer_email = Column(TEXT)
    customer_phone = Column(TEXT)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(16), nullable=False)
    status = Column(String(16), nullable=False, default=PaymentStatus.COMPLETED)
    source = Column(String(16), nullable=False, default=PaymentSource.BOOKING)
    trip_id = Column(String(48), nullable=False)
    trip_name = Column(TEXT, nullable=False)
    route_name = Column(TEXT, nullable=False)
    bus_id = Column(Integer, index=True)
    bus_name = Column(TEXT, nullable=False)
    departure_date = Column(DateTime(timezone=True), nullable=False)
    transaction_id = Column(String(64))
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class BusSettings(ORMbase):
    """
    Company profile and preferences of a bus business, one row per business.

    Columns:
        id (Integer):
            Primary key.

        business_id (Integer):
            Foreign key referencing the owning business, unique.

        company_name (TEXT), description (TEXT), address (TEXT), city (TEXT),
        country (TEXT), phone (TEXT), email (TEXT), website (TEXT):
            Public company profile. `company_name`, `phone` and `email` are
            required when saving.

        currency (String(8)), timezone (String(64)):
            Defaults ZMW and Africa/Lusaka.

        operating_hours (JSON):
            `{start, end}` clock times.

        features (JSON), policies (JSON), branding (JSON):
            Preference documents, see `DEFAULT_BUS_SETTINGS`.
    """

    __tablename__ = "bus_settings"

    id = Column(Integer, primary_key=True)
    business_id = Column(
        Integer,
        ForeignKey("business.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    company_name = Column(TEXT, nullable=False)
    description = Column(TEXT)
    address = Column(TEXT)
    city = Column(TEXT)
    country = Column(TEXT)
    phone = Column(TEXT, nullable=False)
    email = Column(TEXT, nullable=False)
    website = Column(TEXT)
    currency = Column(String(8), nullable=False, default="ZMW")
    timezone = Column(String(64), nullable=False, default="Africa/Lusaka")
    operating_hours = Column(JSONType, nullable=False, default=dict)
    features = Column(JSONType, nullable=False, default=dict)
    policies = Column(JSONType, nullable=False, default=dict)
    branding = Column(JSONType, nullable=False, default=dict)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


# ----------------------------------- Pharmacy DB Models --------------------------------------#
class ComplianceRecord(ORMbase):
    """
    A regulatory obligation of a pharmacy: a license renewal, inspection,
    audit, training or certification with a due date.

    Columns:
        id (Integer):
            Primary key.

        record_id (String(16)):
            Public identifier, `CR<yy><mm><dd><6 digits>`, unique.

        business_id (Integer):
            Foreign key referencing the owning business. Cascades on delete.

        type (String(24)):
            Mapped from `ComplianceType`.

        title (TEXT), description (TEXT):
            What has to be done.

        due_date (DateTime), completed_date (DateTime):
            Deadline and completion time.

        status (String(16)):
            `pending`, `completed`, `overdue` or `cancelled`.

        priority (String(16)):
            `low`, `medium`, `high` or `critical`.

        assigned_to (TEXT), responsible_person (TEXT):
            People in charge.

        documents (JSON):
            List of document references.

        notes (TEXT):
            Free text.
    """

    __tablename__ = "compliance_record"

    id = Column(Integer, primary_key=True)
    record_id = Column(String(16), nullable=False, unique=True)
    business_id = Column(
        Integer,
        ForeignKey("business.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = Column(String(24), nullable=False)
    title = Column(TEXT, nullable=False)
    description = Column(TEXT, nullable=False)
    due_date = Column(DateTime(timezone=True), nullable=False, index=True)
    completed_date = Column(DateTime(timezone=True))
    status = Column(String(16), nullable=False, default=ComplianceStatus.PENDING)
    priority = Column(String(16), nullable=False, default=CompliancePriority.MEDIUM)
    assigned_to = Column(TEXT)
    responsible_person = Column(TEXT, nullable=False)
    documents = Column(JSONType, nullable=False, default=list)
    notes = Column(TEXT)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class PrescriptionMedicine(ORMbase):
    """
    A medicine line of a prescription.

    Columns:
        id (Integer):
            Primary key.

        prescription_id (Integer):
            Foreign key referencing `prescription.id`. Cascades on delete.

        medicine_id (String(48)):
            Optional reference to the pharmacy's product.

        medicine_name (TEXT), dosage (TEXT), frequency (TEXT),
        duration (TEXT), instructions (TEXT):
            How the medicine is to be taken.

        quantity (Integer):
            Quantity to dispense, at least one.
    """

    __tablename__ = "prescription_medicine"

    id = Column(Integer, primary_key=True)
    prescription_id = Column(
        Integer,
        ForeignKey("prescription.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    medicine_id = Column(String(48))
    medicine_name = Column(TEXT, nullable=False)
    dosage = Column(TEXT, nullable=False)
    frequency = Column(TEXT, nullable=False)
    duration = Column(TEXT, nullable=False)
    quantity = Column(Integer, nullable=False)
    instructions = Column(TEXT)
    # Metadata
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())


class Prescription(ORMbase):
    """
    A doctor's prescription handled by a pharmacy.

    Columns:
        id (Integer):
            Primary key.

        business_id (Integer):
            Foreign key referencing the owning business. Cascades on delete.

        prescription_number (String(48)):
            Number printed on the prescription, unique per business.

        patient_id (String(48)), patient_name (TEXT):
            The patient.

        doctor_name (TEXT), doctor_license (String(48)):
            The prescribing doctor.

        diagnosis (TEXT), notes (TEXT):
            Free text.

        prescribed_date (DateTime), expiry_date (DateTime),
        dispensed_date (DateTime):
            Lifecycle dates. Prescriptions past `expiry_date` can not be
            dispensed.

        status (String(16)):
            `pending`, `dispensed`, `cancelled` or `expired`.

        prescription_type (String(16)):
            `online` or `physical`.

        total_amount (Numeric(12, 2)):
            Price of the prescription.

        medicines (relationship):
            The `PrescriptionMedicine` lines.
    """

    __tablename__ = "prescription"
    __table_args__ = (UniqueConstraint("prescription_number", "business_id"),)

    id = Column(Integer, primary_key=True)
    business_id = Column(
        Integer,
        ForeignKey("business.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    prescription_number = Column(String(48), nullable=False)
    patient_id = Column(String(48), nullable=False)
    patient_name = Column(TEXT, nullable=False)
    doctor_name = Column(TEXT, nullable=False)
    doctor_license = Column(String(48))
    diagnosis = Column(TEXT)
    notes = Column(TEXT)
    prescribed_date = Column(DateTime(timezone=True), nullable=False)
    expiry_date = Column(DateTime(timezone=True), nullable=False)
    dispensed_date = Column(DateTime(timezone=True))
    status = Column(String(16), nullable=False, default=PrescriptionStatus.PENDING)
    prescription_type = Column(
        String(16), nullable=False, default=PrescriptionType.PHYSICAL
    )
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    # Metadata
    updated_on = Column(DateTime(timezone=True), onupdate=func.now())
    created_on = Column(DateTime(timezone=True), nullable=False, default=func.now())

    medicines = relationship(
        PrescriptionMedicine,
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by=PrescriptionMedicine.id,
    )
