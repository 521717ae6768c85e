import asyncio
from types import SimpleNamespace

from pixelchain.application.use_cases.process_pipeline import CancelToken
from pixelchain.domain.errors import (
    DecodeFailure,
    EncodeFailure,
    InputRequiredError,
    PipelineCancelledError,
    PipelineTimeoutError,
    UnsupportedOperationError,
)
from pixelchain.infrastructure.api.routes.image_routes import cancel_on_disconnect, status_for


class FakeRequest:
    def __init__(self, connected_polls):
        self.connected_polls = connected_polls
        self.polls = 0
        self.url = SimpleNamespace(path="/images/process")

    async def is_disconnected(self):
        self.polls += 1
        return self.polls > self.connected_polls


def test_disconnect_cancels_token():
    request = FakeRequest(connected_polls=2)
    token = CancelToken()
    asyncio.run(cancel_on_disconnect(request, token, interval=0))
    assert token.cancelled
    assert request.polls == 3


def test_connected_client_leaves_token_alone():
    token = CancelToken()

    async def scenario():
        watcher = asyncio.create_task(
            cancel_on_disconnect(FakeRequest(connected_polls=10**6), token, interval=0.01)
        )
        await asyncio.sleep(0.05)
        watcher.cancel()

    asyncio.run(scenario())
    assert not token.cancelled


def test_status_for_errors():
    assert status_for(UnsupportedOperationError("x")) == 400
    assert status_for(DecodeFailure("bad")) == 400
    assert status_for(PipelineCancelledError("gone")) == 503
    assert status_for(PipelineTimeoutError("slow")) == 504
    assert status_for(EncodeFailure("disk")) == 500
    # subclass resolves through its parent
    assert status_for(InputRequiredError()) == 500
