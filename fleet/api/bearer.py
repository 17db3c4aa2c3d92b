from fastapi.security import HTTPBearer

# HTTP Bearer authentication scheme for staff accounts (admins and drivers)
bearer_staff = HTTPBearer(scheme_name="Staff HTTPBearer")
