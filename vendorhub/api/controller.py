from fastapi import FastAPI
from vendorhub.api import (
    admin_token,
    vendor_token,
    business,
    staff,
    dispatch,
    bus,
    route,
    payment,
    analytics,
    bus_settings,
    compliance,
    compliance_report,
    prescription,
    platform_settings,
    subscription_plan,
    subscription,
    webhook,
)
from vendorhub.src.enums import AppID
from vendorhub.src.exceptions import registerHandlers


# ------------------------------------------------------
# Create separate FastAPI apps for each user domain
# ------------------------------------------------------
app_admin = FastAPI(title="Admin APP")
app_vendor = FastAPI(title="Vendor APP")
app_public = FastAPI(title="Public APP")

# Tag each app with its AppID
app_admin.state.id = AppID.ADMIN
app_vendor.state.id = AppID.VENDOR
app_public.state.id = AppID.PUBLIC


# ------------------------------------------------------
# Admin routers
# ------------------------------------------------------
app_admin.include_router(admin_token.route_admin)
app_admin.include_router(business.route_admin)
app_admin.include_router(platform_settings.route_admin)
app_admin.include_router(compliance_report.route_admin)
app_admin.include_router(subscription_plan.route_admin)


# ------------------------------------------------------
# Vendor routers
# ------------------------------------------------------
app_vendor.include_router(vendor_token.route_vendor)
app_vendor.include_router(business.route_vendor)
app_vendor.include_router(subscription_plan.route_vendor)
app_vendor.include_router(subscription.route_vendor)

# Bus vertical
app_vendor.include_router(staff.route_vendor)
app_vendor.include_router(dispatch.route_vendor)
app_vendor.include_router(bus.route_vendor)
app_vendor.include_router(route.route_vendor)
app_vendor.include_router(payment.route_vendor)
app_vendor.include_router(analytics.route_vendor)
app_vendor.include_router(bus_settings.route_vendor)

# Pharmacy vertical
app_vendor.include_router(compliance.route_vendor)
app_vendor.include_router(prescription.route_vendor)


# ------------------------------------------------------
# Public routers
# ------------------------------------------------------
app_public.include_router(subscription_plan.route_public)
app_public.include_router(webhook.route_public)


for subApp in (app_admin, app_vendor, app_public):
    registerHandlers(subApp)
