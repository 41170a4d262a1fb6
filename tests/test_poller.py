from vendorhub.src.poller import PaymentPoller, PollState


def statuses(*values):
    """A status check answering the given statuses in order."""
    replies = list(values)
    calls = []

    def checkStatus(transactionId):
        calls.append(transactionId)
        reply = replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return {"status": reply, "transactionId": transactionId}

    checkStatus.calls = calls
    return checkStatus


def test_success_after_pending():
    updates = []
    poller = PaymentPoller(
        statuses("Pending", "Pending", "Successful"),
        interval=0,
        maxAttempts=5,
        onUpdate=updates.append,
    )
    result = poller.run("T1")
    assert result.state == PollState.SUCCESS
    assert result.attempts == 3
    assert result.gateway_status == "Successful"
    assert [u.state for u in updates] == [
        PollState.PENDING,
        PollState.PENDING,
        PollState.SUCCESS,
    ]


def test_failed_and_cancelled_end_the_poll():
    assert PaymentPoller(statuses("Failed"), interval=0).run("T1").state == PollState.FAILED
    result = PaymentPoller(statuses("Pending", "Cancelled"), interval=0).run("T1")
    assert result.state == PollState.FAILED
    assert result.gateway_status == "Cancelled"


def test_timeout():
    checkStatus = statuses("Pending", "Pending", "Pending")
    result = PaymentPoller(checkStatus, interval=0, maxAttempts=3).run("T1")
    assert result.state == PollState.TIMEOUT
    assert result.attempts == 3
    assert len(checkStatus.calls) == 3


def test_errors_count_as_attempts():
    checkStatus = statuses(RuntimeError("gateway down"), "Successful")
    result = PaymentPoller(checkStatus, interval=0, maxAttempts=2).run("T1")
    assert result.state == PollState.SUCCESS
    assert result.attempts == 2
    assert result.error is None

    checkStatus = statuses(RuntimeError("gateway down"))
    result = PaymentPoller(checkStatus, interval=0, maxAttempts=1).run("T1")
    assert result.state == PollState.TIMEOUT
    assert result.error == "gateway down"


def test_cancel_before_run():
    checkStatus = statuses("Pending")
    poller = PaymentPoller(checkStatus, interval=0)
    poller.cancel()
    result = poller.run("T1")
    assert result.state == PollState.CANCELLED
    assert checkStatus.calls == []


def test_cancel_from_update_callback():
    checkStatus = statuses("Pending", "Pending", "Successful")
    poller = PaymentPoller(checkStatus, interval=30, maxAttempts=3)
    poller.onUpdate = lambda result: poller.cancel()
    result = poller.run("T1")
    assert result.state == PollState.CANCELLED
    assert result.attempts == 1
