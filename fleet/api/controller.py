from fastapi import FastAPI
from fleet.api import (
    account_token,
    account,
    bootstrap,
    car,
    driver,
    route,
    preorder,
    booking,
    trip,
    vehicle_location,
    energy_log,
    maintenance_log,
    ledger,
    payment_method,
    analytics,
    sync,
    map,
)
from fleet.src.enums import AppID


# ------------------------------------------------------
# Create separate FastAPI apps for staff and customers
# ------------------------------------------------------
app_staff = FastAPI(title="Staff APP")
app_public = FastAPI(title="Public APP")

# Tag each app with its AppID
app_staff.state.id = AppID.STAFF
app_public.state.id = AppID.PUBLIC


# ------------------------------------------------------
# Staff routers
# ------------------------------------------------------
app_staff.include_router(account_token.route_staff)
app_staff.include_router(account.route_staff)

# Fleet
app_staff.include_router(car.route_staff)
app_staff.include_router(driver.route_staff)
app_staff.include_router(route.route_staff)
app_staff.include_router(preorder.route_staff)
app_staff.include_router(vehicle_location.route_staff)
app_staff.include_router(trip.route_staff)
app_staff.include_router(energy_log.route_staff)
app_staff.include_router(maintenance_log.route_staff)
app_staff.include_router(ledger.route_staff)
app_staff.include_router(payment_method.route_staff)

# Reporting and integrations
app_staff.include_router(analytics.route_staff)
app_staff.include_router(sync.route_staff)
app_staff.include_router(map.route_staff)


# ------------------------------------------------------
# Public routers
# ------------------------------------------------------
app_public.include_router(bootstrap.route_public)
app_public.include_router(route.route_public)
app_public.include_router(payment_method.route_public)
app_public.include_router(booking.route_public)
