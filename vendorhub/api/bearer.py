from fastapi.security import HTTPBearer

# HTTP Bearer authentication schemes of the two account domains.
# A missing header is reported as 401 by the token validators.
bearer_admin = HTTPBearer(scheme_name="Admin HTTPBearer", auto_error=False)
bearer_vendor = HTTPBearer(scheme_name="Vendor HTTPBearer", auto_error=False)
