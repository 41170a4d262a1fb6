"""
API Endpoint URL Constants

This module defines the URL paths used throughout the application for
accessing the resources of the marketplace.

These URLs are relative paths and are prefixed by the mount point of the
sub application serving them (`/admin`, `/vendor` or `/public`).
"""

# -------------------------------
# Authentication & Tokens
# -------------------------------
URL_ADMIN_TOKEN = "/account/token"
URL_VENDOR_TOKEN = "/account/token"

# -------------------------------
# Business & accounts
# -------------------------------
URL_BUSINESS = "/business"
URL_BUSINESS_MANAGER = "/business/manager"

# -------------------------------
# Bus
# -------------------------------
URL_DISPATCH = "/bus/dispatch"
URL_DISPATCH_EXPORT = "/bus/dispatch/export"
URL_DISPATCH_PASSENGER = "/bus/dispatch/passenger"
URL_BUS = "/bus/fleet"
URL_ROUTE = "/bus/route"
URL_ROUTE_FARE = "/bus/route/fare"
URL_BUS_PAYMENT = "/bus/payment"
URL_BUS_PAYMENT_EXPORT = "/bus/payment/export"
URL_BUS_ANALYTICS = "/bus/analytics"
URL_BUS_STAFF = "/bus/staff"
URL_BUS_SETTINGS = "/bus/settings"

# -------------------------------
# Pharmacy
# -------------------------------
URL_COMPLIANCE = "/pharmacy/compliance"
URL_COMPLIANCE_EXPORT = "/pharmacy/compliance/export"
URL_PRESCRIPTION = "/pharmacy/prescription"
URL_PRESCRIPTION_MEDICINE = "/pharmacy/prescription/medicine"
URL_PRESCRIPTION_DISPENSE = "/pharmacy/prescription/dispense"

# -------------------------------
# Platform
# -------------------------------
URL_PLATFORM_SETTINGS = "/settings"
URL_COMPLIANCE_REPORT = "/compliance"
URL_COMPLIANCE_REPORT_EXPORT = "/compliance/export"

# -------------------------------
# Subscription & billing
# -------------------------------
URL_SUBSCRIPTION = "/subscription"
URL_SUBSCRIPTION_PLAN = "/subscription/plan"
URL_SUBSCRIPTION_STATUS = "/subscription/status"
URL_SUBSCRIPTION_UPGRADE = "/subscription/upgrade"
URL_SUBSCRIPTION_PAYMENT_STATUS = "/subscription/payment-status"
URL_SUBSCRIPTION_CANCEL = "/subscription/cancel"
URL_SUBSCRIPTION_BILLING = "/subscription/billing"
URL_LIPILA_WEBHOOK = "/lipila/webhook"
