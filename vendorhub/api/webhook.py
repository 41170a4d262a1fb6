import logging
from typing import Optional
from fastapi import APIRouter, Body, Depends
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict

from vendorhub.src.db import BillingRecord, sessionMaker
from vendorhub.src import billing, exceptions, getters
from vendorhub.src.enums import GatewayStatus
from vendorhub.src.loggers import logEvent
from vendorhub.src.functions import makeExceptionResponses
from vendorhub.src.urls import URL_LIPILA_WEBHOOK

route_public = APIRouter()
logger = logging.getLogger("uvicorn.error")


## Input Body
class LipilaCallback(BaseModel):
    model_config = ConfigDict(extra="allow")

    transaction_id: Optional[str] = None
    transactionId: Optional[str] = None
    status: Optional[str] = None
    externalId: Optional[str] = None

    def transaction(self) -> Optional[str]:
        return self.transaction_id or self.transactionId


## API endpoints [Public]
@route_public.post(
    URL_LIPILA_WEBHOOK,
    tags=["Payment Gateway"],
    responses=makeExceptionResponses(
        [exceptions.MissingParameter, exceptions.InvalidIdentifier]
    ),
    description="""
    Payment notification sent by the Lipila gateway (JSON body).

    - The invoice is found by its `transaction_id` (or `transactionId`).
    - `Successful` marks the invoice paid and activates its subscription.
    - `Failed` and `Cancelled` mark the invoice accordingly and move an active
      subscription back to pending.
    - Any other status leaves the invoice pending.
    """,
)
async def lipila_webhook(
    body: LipilaCallback = Body(),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        transactionId = body.transaction()
        if not transactionId or not body.status:
            raise exceptions.MissingParameter("transaction_id", "status")
        # Statuses the gateway adds later are kept as pending
        gateway = billing.gatewayStatus(body.status) or GatewayStatus.PENDING

        invoice = (
            session.query(BillingRecord)
            .filter(BillingRecord.transaction_id == transactionId)
            .order_by(BillingRecord.id.desc())
            .first()
        )
        if invoice is None:
            logger.warning("Lipila callback for unknown transaction %s", transactionId)
            raise exceptions.InvalidIdentifier()

        subscription = billing.applyWebhook(session, invoice, gateway)
        session.commit()
        session.refresh(invoice)

        data = {
            "invoice": jsonable_encoder(invoice),
            "subscription_id": subscription.id if subscription else None,
        }
        logEvent(None, request_info, data)
        return {"success": True, "message": "Webhook processed"}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
