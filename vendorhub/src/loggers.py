from typing import Optional, Union
from vendorhub.src.db import AdminToken, VendorToken
from vendorhub.src import openobserve
from vendorhub.src.schemas import RequestInfo
from vendorhub.src.enums import AppID


def logEvent(
    token: Optional[Union[AdminToken, VendorToken]],
    requestInfo: RequestInfo,
    data: dict,
) -> None:
    """
    Log an audit event to OpenObserve with request and user context.

    Args:
        token (AdminToken | VendorToken | None): Authenticated user token,
            None for unauthenticated callers such as the gateway webhook.
        requestInfo (RequestInfo): Metadata about the current request.
        data (dict): Event-specific details to include in the log.

    Notes:
        - Automatically attaches `_app_id`, `_method` and `_path`.
        - User-specific keys depend on the app:
            - Admin  → `_admin_id`
            - Vendor → `_vendor_id` and `_business_id`
    """
    logDetails = {
        "_method": requestInfo.method,
        "_path": requestInfo.path,
        "_app_id": requestInfo.app_id,
    }

    if requestInfo.app_id == AppID.ADMIN and isinstance(token, AdminToken):
        logDetails["_admin_id"] = token.admin_id
    elif requestInfo.app_id == AppID.VENDOR and isinstance(token, VendorToken):
        logDetails["_vendor_id"] = token.vendor_id
        logDetails["_business_id"] = token.business_id

    logDetails.update(data)
    openobserve.logEvent(logDetails)
