"""
API Endpoint URL Constants

This module defines the URL paths used throughout the application.
The paths are relative to the sub application they are mounted on
(`/staff` or `/public`).
"""

# -------------------------------
# Authentication & Accounts
# -------------------------------
URL_ACCOUNT_TOKEN = "/account/token"
URL_ACCOUNT = "/account"
URL_BOOTSTRAP = "/account/bootstrap"

# -------------------------------
# Fleet
# -------------------------------
URL_CAR = "/fleet/car"
URL_DRIVER = "/fleet/driver"
URL_ROUTE = "/fleet/route"
URL_PREORDER = "/fleet/preorder"
URL_PREORDER_ASSIGNMENT = "/fleet/preorder/assignment"
URL_PREORDER_PAYMENT_PROOF = "/fleet/preorder/payment_proof"
URL_TRIP = "/fleet/trip"
URL_TRIP_LOCATION = "/fleet/trip/location"
URL_TRIP_LOCATION_LATEST = "/fleet/trip/location/latest"
URL_ENERGY_LOG = "/fleet/energy_log"
URL_MAINTENANCE_LOG = "/fleet/maintenance_log"
URL_LEDGER = "/fleet/ledger"
URL_PAYMENT_METHOD = "/fleet/payment_method"
URL_PAYMENT_METHOD_QR_CODE = "/fleet/payment_method/qr_code"

# -------------------------------
# Analytics
# -------------------------------
URL_ANALYTICS_FINANCE = "/analytics/finance"
URL_ANALYTICS_FLEET = "/analytics/fleet"
URL_ANALYTICS_DASHBOARD = "/analytics/dashboard"
URL_ANALYTICS_TRIP_HISTORY = "/analytics/trip_history"

# -------------------------------
# Integrations
# -------------------------------
URL_SYNC = "/sync"
URL_MAP_TOKEN = "/map/token"

# -------------------------------
# Public
# -------------------------------
URL_BOOKING = "/booking"
URL_BOOKING_PAYMENT_PROOF = "/booking/payment_proof"
URL_PUBLIC_ROUTE = "/route"
URL_PUBLIC_PAYMENT_METHOD = "/payment_method"
URL_PUBLIC_QR_CODE = "/payment_method/qr_code"
