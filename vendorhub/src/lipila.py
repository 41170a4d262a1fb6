"""
Client for the Lipila payment gateway.

Lipila collects mobile money and card payments in Zambia. The gateway is
asynchronous: a collection request returns a transaction id with the status
`Pending` and the final status arrives either through the webhook or by
polling `/transactions/status`.

Usage:
    >>> from vendorhub.src.lipila import lipilaClient
    >>> response = lipilaClient.collect(
    ...     GatewayPaymentType.MOBILE_MONEY, 250, "0971234567", "SUB-1-17000"
    ... )
    >>> response["transactionId"]
"""

import logging, re, time
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Callable, Optional
import requests

from vendorhub.src import exceptions
from vendorhub.src.constants import (
    LIPILA_BASE_URL,
    LIPILA_CALLBACK_URL,
    LIPILA_COUNTRY_CODE,
    LIPILA_CURRENCY,
    LIPILA_MAX_RETRIES,
    LIPILA_MOCK_MODE,
    LIPILA_REDIRECT_URL,
    LIPILA_RETRY_DELAY,
    LIPILA_RETRY_STATUS,
    LIPILA_SECRET_KEY,
    LIPILA_TIMEOUT,
)
from vendorhub.src.enums import GatewayPaymentType, GatewayStatus

logger = logging.getLogger("Lipila")

URL_MOBILE_MONEY = "/transactions/mobile-money"
URL_CARD = "/transactions/card"
URL_STATUS = "/transactions/status"
URL_CANCEL = "/transactions/cancel"


def normalizePhoneNumber(phoneNumber: str) -> str:
    """
    Normalize a Zambian phone number to the `260XXXXXXXXX` form.

    Accepts the international form (with or without `+`), the national form
    with a leading zero and the bare 9 digit subscriber number. Separators
    are ignored.

    Raises:
        exceptions.InvalidValue: If the result is not `260` + 9 digits.

    Example:
        >>> normalizePhoneNumber("+260 97 123 4567")
        '260971234567'
        >>> normalizePhoneNumber("0971234567")
        '260971234567'
    """
    digits = re.sub(r"\D", "", phoneNumber or "")
    if digits.startswith("0") and len(digits) == 10:
        digits = LIPILA_COUNTRY_CODE + digits[1:]
    elif len(digits) == 9:
        digits = LIPILA_COUNTRY_CODE + digits
    if not re.fullmatch(LIPILA_COUNTRY_CODE + r"[0-9]{9}", digits):
        raise exceptions.InvalidValue("phone_number")
    return digits


def splitName(fullName: Optional[str]) -> tuple[str, str]:
    parts = (fullName or "").split()
    if not parts:
        return "Customer", "User"
    return parts[0], " ".join(parts[1:]) or "User"


class LipilaClient:
    """
    Thin wrapper around the Lipila REST API.

    Requests failing with 502/503/504, timing out or refused are sent at
    most `maxRetries` times, waiting `retryDelay * attempt` seconds in between.
    In mock mode no request is sent and every payment succeeds immediately.
    """

    def __init__(
        self,
        secretKey: str = LIPILA_SECRET_KEY,
        baseURL: str = LIPILA_BASE_URL,
        currency: str = LIPILA_CURRENCY,
        mockMode: bool = LIPILA_MOCK_MODE,
        maxRetries: int = LIPILA_MAX_RETRIES,
        retryDelay: float = LIPILA_RETRY_DELAY,
        httpSession: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.secretKey = secretKey
        self.baseURL = baseURL.rstrip("/")
        self.currency = currency
        self.mockMode = mockMode
        self.maxRetries = maxRetries
        self.retryDelay = retryDelay
        self.httpSession = httpSession or requests.Session()
        self.sleep = sleep

    # -----------------------------------------------------------------------
    # Transport
    # -----------------------------------------------------------------------
    def headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.secretKey}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def request(self, method: str, path: str, **kwargs) -> dict:
        """
        Send a request, retrying on gateway errors, timeouts and refused
        connections.

        Raises:
            exceptions.PaymentGatewayError: On non-retryable errors, invalid
            response bodies or when all attempts are exhausted.
        """
        url = self.baseURL + path
        attempt = 0
        while True:
            attempt += 1
            try:
                response = self.httpSession.request(
                    method, url, headers=self.headers(), timeout=LIPILA_TIMEOUT, **kwargs
                )
                if response.status_code in LIPILA_RETRY_STATUS:
                    raise requests.HTTPError(
                        f"{response.status_code} gateway error", response=response
                    )
            except (requests.Timeout, requests.ConnectionError, requests.HTTPError) as e:
                if attempt >= self.maxRetries:
                    raise exceptions.PaymentGatewayError(
                        f"Payment gateway unavailable: {e}"
                    )
                logger.warning(
                    "Lipila %s %s failed (%s), attempt %d/%d",
                    method,
                    path,
                    e,
                    attempt,
                    self.maxRetries,
                )
                self.sleep(self.retryDelay * attempt)
                continue
            except requests.RequestException as e:
                raise exceptions.PaymentGatewayError(f"Payment gateway unavailable: {e}")

            if response.status_code >= HTTPStatus.BAD_REQUEST:
                message = self.errorMessage(response)
                logger.error("Lipila %s %s rejected: %s", method, path, message)
                raise exceptions.PaymentGatewayError(f"Payment gateway error: {message}")
            try:
                return response.json()
            except ValueError:
                logger.error("Lipila %s %s answered with invalid JSON", method, path)
                raise exceptions.PaymentGatewayError(
                    "Payment gateway returned an invalid response"
                )

    @staticmethod
    def errorMessage(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or str(response.status_code)
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return str(body)

    # -----------------------------------------------------------------------
    # Collections
    # -----------------------------------------------------------------------
    def mockResponse(self, amount: float, externalId: str, redirectURL=None) -> dict:
        logger.warning("Lipila mock mode: no money is charged")
        timestamp = int(datetime.now(timezone.utc).timestamp() * 1000)
        return {
            "status": GatewayStatus.SUCCESSFUL.value,
            "message": "Mock payment successful",
            "transactionId": f"MOCK-{timestamp}",
            "externalId": externalId,
            "amount": amount,
            "currency": self.currency,
            "paymentType": "mock",
            "redirectUrl": redirectURL,
        }

    def collectMobileMoney(
        self,
        amount: float,
        phoneNumber: str,
        externalId: str,
        narration: str = "Mobile money payment",
        fullName: Optional[str] = None,
        email: Optional[str] = None,
    ) -> dict:
        """Request a mobile money collection from the customer's wallet."""
        if amount <= 0:
            raise exceptions.InvalidValue("amount")
        phoneNumber = normalizePhoneNumber(phoneNumber)
        if self.mockMode:
            return self.mockResponse(amount, externalId)
        body = {
            "currency": self.currency,
            "amount": amount,
            "accountNumber": phoneNumber,
            "phoneNumber": phoneNumber,
            "fullName": fullName or "Customer",
            "email": email or "",
            "externalId": externalId,
            "narration": narration,
        }
        if LIPILA_CALLBACK_URL:
            body["callbackUrl"] = LIPILA_CALLBACK_URL
        return self.request("POST", URL_MOBILE_MONEY, json=body)

    def collectCard(
        self,
        amount: float,
        phoneNumber: str,
        externalId: str,
        redirectURL: str,
        narration: str = "Card payment",
        fullName: Optional[str] = None,
        email: Optional[str] = None,
    ) -> dict:
        """Start a card collection; the customer completes it on `redirectUrl`."""
        if amount <= 0:
            raise exceptions.InvalidValue("amount")
        if not redirectURL:
            raise exceptions.MissingParameter("client_redirect_url")
        phoneNumber = normalizePhoneNumber(phoneNumber)
        if self.mockMode:
            return self.mockResponse(amount, externalId, redirectURL)
        firstName, lastName = splitName(fullName)
        body = {
            "currency": self.currency,
            "amount": amount,
            "phoneNumber": phoneNumber,
            "email": email or "",
            "customerFirstName": firstName,
            "customerLastName": lastName,
            "customerCity": "Lusaka",
            "customerCountry": "Zambia",
            "externalId": externalId,
            "narration": narration,
            "clientRedirectUrl": redirectURL,
        }
        return self.request("POST", URL_CARD, json=body)

    def collect(
        self,
        paymentType: GatewayPaymentType,
        amount: float,
        phoneNumber: str,
        externalId: str,
        narration: Optional[str] = None,
        fullName: Optional[str] = None,
        email: Optional[str] = None,
    ) -> dict:
        """Dispatch a collection to the mobile money or the card endpoint."""
        narration = narration or f"Subscription payment - {externalId}"
        if paymentType == GatewayPaymentType.CARD:
            redirectURL = f"{LIPILA_REDIRECT_URL}?payment=success&transactionId={externalId}"
            return self.collectCard(
                amount, phoneNumber, externalId, redirectURL, narration, fullName, email
            )
        return self.collectMobileMoney(
            amount, phoneNumber, externalId, narration, fullName, email
        )

    # -----------------------------------------------------------------------
    # Transactions
    # -----------------------------------------------------------------------
    def checkStatus(self, transactionId: str) -> dict:
        """Fetch the current status document of a transaction."""
        if self.mockMode:
            return {
                "status": GatewayStatus.SUCCESSFUL.value,
                "message": "Mock transaction successful",
                "transactionId": transactionId,
                "externalId": transactionId,
                "currency": self.currency,
                "amount": 0,
                "paymentType": "mock",
            }
        return self.request("GET", URL_STATUS, params={"transactionId": transactionId})

    def cancel(self, transactionId: str) -> dict:
        """Ask the gateway to stop a transaction still waiting for the customer."""
        if self.mockMode:
            return {"message": "Transaction cancelled"}
        return self.request("POST", URL_CANCEL, json={"transactionId": transactionId})


lipilaClient = LipilaClient()
