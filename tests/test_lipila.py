import pytest
import requests

from vendorhub.src import exceptions
from vendorhub.src.enums import GatewayPaymentType
from vendorhub.src.lipila import LipilaClient, normalizePhoneNumber, splitName


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self.body = body
        self.text = text

    def json(self):
        if self.body is None:
            raise ValueError("No JSON body")
        return self.body


class FakeSession:
    """Replays queued responses (or raises queued exceptions) in order."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def makeClient(*replies, **kwargs):
    delays = []
    client = LipilaClient(
        secretKey="secret",
        baseURL="https://gateway.test/",
        mockMode=kwargs.pop("mockMode", False),
        httpSession=FakeSession(*replies),
        sleep=delays.append,
        **kwargs,
    )
    return client, delays


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("+260 97 123 4567", "260971234567"),
        ("260971234567", "260971234567"),
        ("0971234567", "260971234567"),
        ("971234567", "260971234567"),
        ("097-123-4567", "260971234567"),
    ],
)
def test_normalize_phone_number(raw, expected):
    assert normalizePhoneNumber(raw) == expected


@pytest.mark.parametrize("raw", ["", "12345", "+44 20 7946 0958", "26097123456"])
def test_invalid_phone_number(raw):
    with pytest.raises(exceptions.InvalidValue):
        normalizePhoneNumber(raw)


def test_split_name():
    assert splitName("Ada Lovelace Banda") == ("Ada", "Lovelace Banda")
    assert splitName("Ada") == ("Ada", "User")
    assert splitName(None) == ("Customer", "User")


def test_mobile_money_collection():
    client, _ = makeClient(FakeResponse(body={"status": "Pending", "transactionId": "T1"}))
    response = client.collect(
        GatewayPaymentType.MOBILE_MONEY, 250, "0971234567", "SUB-1", fullName="Ada"
    )
    assert response["transactionId"] == "T1"

    [(method, url, kwargs)] = client.httpSession.calls
    assert method == "POST"
    assert url == "https://gateway.test/transactions/mobile-money"
    assert kwargs["headers"]["Authorization"] == "Bearer secret"
    assert kwargs["json"]["accountNumber"] == "260971234567"
    assert kwargs["json"]["amount"] == 250
    assert kwargs["json"]["externalId"] == "SUB-1"
    assert kwargs["json"]["narration"] == "Subscription payment - SUB-1"


def test_card_collection_splits_the_name():
    client, _ = makeClient(FakeResponse(body={"status": "Pending", "transactionId": "T1"}))
    client.collectCard(
        100, "0971234567", "SUB-1", "https://app.test/return", fullName="Ada Banda"
    )
    [(_, url, kwargs)] = client.httpSession.calls
    assert url.endswith("/transactions/card")
    assert kwargs["json"]["customerFirstName"] == "Ada"
    assert kwargs["json"]["customerLastName"] == "Banda"
    assert kwargs["json"]["clientRedirectUrl"] == "https://app.test/return"


def test_card_collection_needs_redirect():
    client, _ = makeClient()
    with pytest.raises(exceptions.MissingParameter):
        client.collectCard(100, "0971234567", "SUB-1", "")


def test_amount_must_be_positive():
    client, _ = makeClient()
    with pytest.raises(exceptions.InvalidValue):
        client.collectMobileMoney(0, "0971234567", "SUB-1")
    assert client.httpSession.calls == []


def test_retries_gateway_errors():
    client, delays = makeClient(
        FakeResponse(503),
        requests.Timeout("read timed out"),
        FakeResponse(body={"status": "Successful", "transactionId": "T1"}),
        retryDelay=2,
    )
    assert client.checkStatus("T1")["status"] == "Successful"
    assert delays == [2, 4]
    assert len(client.httpSession.calls) == 3


def test_gives_up_after_max_retries():
    client, delays = makeClient(*[FakeResponse(502)] * 2, maxRetries=2, retryDelay=1)
    with pytest.raises(exceptions.PaymentGatewayError):
        client.checkStatus("T1")
    assert delays == [1]
    assert len(client.httpSession.calls) == 2


def test_timeouts_stop_after_three_attempts():
    client, delays = makeClient(*[requests.Timeout("read timed out")] * 4)
    with pytest.raises(exceptions.PaymentGatewayError):
        client.checkStatus("T1")
    assert len(client.httpSession.calls) == 3
    assert delays == [2, 4]


def test_retries_refused_connections():
    client, delays = makeClient(
        requests.ConnectionError("Connection refused"),
        FakeResponse(body={"status": "Pending", "transactionId": "T1"}),
        retryDelay=1,
    )
    assert client.checkStatus("T1")["status"] == "Pending"
    assert delays == [1]


def test_other_transport_errors_are_gateway_errors():
    client, delays = makeClient(requests.TooManyRedirects("Exceeded 30 redirects"))
    with pytest.raises(exceptions.PaymentGatewayError):
        client.checkStatus("T1")
    assert delays == []


def test_invalid_json_is_a_gateway_error():
    client, _ = makeClient(FakeResponse(200, text="<html>maintenance</html>"))
    with pytest.raises(exceptions.PaymentGatewayError) as e:
        client.checkStatus("T1")
    assert e.value.detail == "Payment gateway returned an invalid response"


def test_client_errors_are_not_retried():
    client, delays = makeClient(FakeResponse(400, body={"message": "Invalid account"}))
    with pytest.raises(exceptions.PaymentGatewayError) as e:
        client.checkStatus("T1")
    assert e.value.detail == "Payment gateway error: Invalid account"
    assert delays == []


def test_mock_mode_sends_nothing():
    client, _ = makeClient(mockMode=True)
    response = client.collect(GatewayPaymentType.MOBILE_MONEY, 10, "0971234567", "SUB-1")
    assert response["status"] == "Successful"
    assert response["transactionId"].startswith("MOCK-")
    assert client.httpSession.calls == []


def test_cancel_transaction():
    client, _ = makeClient(FakeResponse(body={"message": "Transaction cancelled"}))
    assert client.cancel("T1") == {"message": "Transaction cancelled"}
    [(method, url, kwargs)] = client.httpSession.calls
    assert method == "POST"
    assert url == "https://gateway.test/transactions/cancel"
    assert kwargs["json"] == {"transactionId": "T1"}
