import argparse
from http import HTTPStatus
from requests import post

from vendorhub.src import argon2
from vendorhub.src.constants import DEFAULT_PLATFORM_SETTINGS
from vendorhub.src.enums import (
    AdminRole,
    BillingCycle,
    PlanType,
    ServiceType,
    VendorRole,
)
from vendorhub.src.urls import (
    URL_ADMIN_TOKEN,
    URL_BUSINESS,
    URL_BUSINESS_MANAGER,
    URL_VENDOR_TOKEN,
    URL_BUS,
    URL_ROUTE,
)
from vendorhub.src.db import (
    Admin,
    PlatformSetting,
    SubscriptionPlan,
    sessionMaker,
    engine,
    ORMbase,
)

# (vertical, name, plan type, price, features, max users, max loans, max storage, max staff)
DEFAULT_PLANS = [
    (
        ServiceType.BUS,
        "Starter Bus",
        PlanType.BASIC,
        3.00,
        ["Up to 5 buses", "Up to 3 routes", "Dispatch management", "Basic analytics"],
        5, 3, 1, 5,
    ),
    (
        ServiceType.BUS,
        "Professional Bus",
        PlanType.PREMIUM,
        8.00,
        ["Up to 20 buses", "Up to 15 routes", "Payments export", "Advanced analytics"],
        20, 15, 5, 25,
    ),
    (
        ServiceType.BUS,
        "Enterprise Bus",
        PlanType.ENTERPRISE,
        15.00,
        ["Unlimited buses", "Unlimited routes", "Priority support", "Custom branding"],
        -1, -1, -1, -1,
    ),
    (
        ServiceType.PHARMACY,
        "Starter Pharmacy",
        PlanType.BASIC,
        2.50,
        ["Prescription management", "Compliance tracking", "2 staff accounts"],
        1, 100, 1, 2,
    ),
    (
        ServiceType.PHARMACY,
        "Professional Pharmacy",
        PlanType.PREMIUM,
        6.00,
        ["Prescription management", "Compliance exports", "10 staff accounts"],
        3, 500, 5, 10,
    ),
    (
        ServiceType.HOTEL,
        "Starter Hotel",
        PlanType.BASIC,
        4.00,
        ["Up to 20 rooms", "Booking management"],
        2, 20, 1, 5,
    ),
    (
        ServiceType.STORE,
        "Starter Store",
        PlanType.BASIC,
        2.00,
        ["Up to 50 products", "Order tracking"],
        1, 50, 1, 2,
    ),
]


# ----------------------------------- Project Setup -------------------------------------------#
def removeTables():
    session = sessionMaker()
    ORMbase.metadata.drop_all(engine)
    session.commit()
    print("* All tables deleted")
    session.close()


def createTables():
    session = sessionMaker()
    ORMbase.metadata.create_all(engine)
    session.commit()
    print("* All tables created")
    session.close()


def initDB():
    session = sessionMaker()
    password = argon2.makePassword("password")
    admin = Admin(
        username="admin",
        password=password,
        full_name="VendorHub admin",
        role=AdminRole.SUPER_ADMIN,
    )
    guest = Admin(
        username="guest",
        password=password,
        full_name="VendorHub guest",
        role=AdminRole.ADMIN,
    )
    session.add_all([admin, guest])
    session.flush()

    for sortOrder, plan in enumerate(DEFAULT_PLANS, start=1):
        vertical, name, planType, price, features, users, loans, storage, staff = plan
        session.add(
            SubscriptionPlan(
                name=name,
                vendor_type=vertical,
                plan_type=planType,
                price=price,
                billing_cycle=BillingCycle.MONTHLY,
                features=features,
                max_users=users,
                max_loans=loans,
                max_storage=storage,
                max_staff_accounts=staff,
                is_popular=planType == PlanType.PREMIUM,
                sort_order=sortOrder,
            )
        )

    for section, value in DEFAULT_PLATFORM_SETTINGS.items():
        session.add(PlatformSetting(section=section, value=value, updated_by=admin.id))

    session.commit()
    print("* Initialization completed")
    session.close()


def POST(URL: str, header: dict = {}, status_code: int = HTTPStatus.CREATED, **kwargs):
    response = post(URL, headers=header, **kwargs)
    assert response.status_code == status_code, response.text
    return response


def testDB():
    # Base URL
    BASE_URL = "http://127.0.0.1:8080"

    # Create Admin Token
    credentials = {"username": "admin", "password": "password"}
    response = POST(BASE_URL + "/admin" + URL_ADMIN_TOKEN, data=credentials)
    print("* Created token for admin")
    accessToken = {"Authorization": f"Bearer {response.json()['access_token']}"}

    # Create Businesses
    businesses = {}
    for name, serviceType in (
        ("Test bus company", ServiceType.BUS),
        ("Test pharmacy", ServiceType.PHARMACY),
    ):
        businessData = {
            "name": name,
            "service_type": serviceType,
            "contact_person": "Managing director",
            "phone_number": "+260971234567",
            "email_id": "example@test.com",
            "address": "Cairo Road, Lusaka",
        }
        business = POST(BASE_URL + "/admin" + URL_BUSINESS, accessToken, data=businessData)
        businesses[serviceType] = business.json()["business"]["id"]
    print("* Created businesses")

    # Create Manager accounts
    for serviceType, businessId in businesses.items():
        managerData = {
            "business_id": businessId,
            "username": "manager",
            "password": "password",
            "full_name": f"Test {serviceType.value} manager",
        }
        POST(BASE_URL + "/admin" + URL_BUSINESS_MANAGER, accessToken, data=managerData)
    print(f"* Created {VendorRole.MANAGER.value} accounts")

    # Create Vendor Token for the bus company
    credentials = {
        "business_id": businesses[ServiceType.BUS],
        "username": "manager",
        "password": "password",
    }
    response = POST(BASE_URL + "/vendor" + URL_VENDOR_TOKEN, data=credentials)
    vendorToken = {"Authorization": f"Bearer {response.json()['access_token']}"}

    # Create a route and a bus
    routeData = {
        "name": "Lusaka - Kabwe",
        "stops": ["Lusaka", "Chibombo", "Kabwe"],
        "total_distance": 140,
    }
    POST(BASE_URL + "/vendor" + URL_ROUTE, vendorToken, data=routeData)
    busData = {
        "name": "Express 1",
        "number_plate": "BAZ1234",
        "seats": 60,
        "bus_type": "Coach",
    }
    POST(BASE_URL + "/vendor" + URL_BUS, vendorToken, data=busData)
    print("* Created bus test data")


# Setup database
if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    # remove tables
    parser.add_argument("-rm", action="store_true", help="remove tables")
    parser.add_argument("-cr", action="store_true", help="create tables")
    parser.add_argument("-init", action="store_true", help="initialize DB")
    parser.add_argument("-test", action="store_true", help="add test data")
    args = parser.parse_args()

    if args.rm:
        removeTables()
    if args.cr:
        createTables()
    if args.init:
        initDB()
    if args.test:
        testDB()
