"""Tests for the HTTP game client."""
import httpx
import pytest
from httpx import ASGITransport

from backend.client.api_client import GameAPIClient, GameTransportError, error_from_response
from backend.services.game.exceptions import (
    AuthError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

API_BASE_URL = "http://test"


@pytest.fixture
async def api(test_app):
    async with GameAPIClient(API_BASE_URL, transport=ASGITransport(app=test_app)) as client:
        yield client


async def test_admin_and_guest_flow(api):
    created = await api.create_session("Sam", "Lee", total_rounds=1)
    code, pin = created["session"]["session_code"], created["admin_pin"]

    joined = await api.join(code, "Ann")
    assert joined["player"]["name"] == "Ann"

    login = await api.admin_login(code, pin)
    assert login["is_admin"] is True

    started = await api.start(code, pin, intensity=0.9)
    assert started["round"] == 1

    voted = await api.vote(code, "Ann", 1, "A")
    assert voted["tally"]["A"] == 1

    revealed = await api.reveal(code, pin, 1, actual_choice="A")
    assert revealed["is_final_round"] is True

    finished = await api.next_round(code, pin)
    assert finished["final"]["overall_winner"] == "A"

    status = await api.get_status(code)
    assert status["session"]["status"] == "complete"


async def test_server_errors_map_to_game_errors(api):
    created = await api.create_session("Sam", "Lee")
    code = created["session"]["session_code"]

    with pytest.raises(NotFoundError):
        await api.get_status("ZZZZZZ")
    with pytest.raises(AuthError):
        await api.admin_login(code, "0000")
    with pytest.raises(InvalidStateError):
        await api.vote(code, "Ann", 1, "A")
    with pytest.raises(ValidationError):
        await api.join(code, "   ")

    await api.join(code, "Ann")
    with pytest.raises(ConflictError):
        await api.join(code, "ann")


def test_error_from_response_falls_back_to_status():
    response = httpx.Response(404, json={"detail": "gone"})
    error = error_from_response(response)

    assert isinstance(error, NotFoundError)
    assert error.message == "gone"

    assert isinstance(error_from_response(httpx.Response(500, text="boom")), GameTransportError)


async def test_vote_retries_once_on_network_failure():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectTimeout("timed out", request=request)
        return httpx.Response(200, json={"round": 1, "choice": "B", "tally": {"A": 0, "B": 1, "total": 1}})

    async with GameAPIClient(API_BASE_URL, transport=httpx.MockTransport(handler)) as api:
        response = await api.vote("ABC234", "Ann", 1, "B")

    assert len(calls) == 2
    assert response["choice"] == "B"


async def test_vote_gives_up_after_second_failure():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("refused", request=request)

    async with GameAPIClient(API_BASE_URL, transport=httpx.MockTransport(handler)) as api:
        with pytest.raises(GameTransportError):
            await api.vote("ABC234", "Ann", 1, "B")

    assert len(calls) == 2


async def test_rejected_vote_is_not_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(409, json={"detail": "Voting is closed", "code": "stale_state"})

    async with GameAPIClient(API_BASE_URL, transport=httpx.MockTransport(handler)) as api:
        with pytest.raises(InvalidStateError):
            await api.vote("ABC234", "Ann", 1, "A")

    assert len(calls) == 1


async def test_unreachable_server_raises_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async with GameAPIClient(API_BASE_URL, transport=httpx.MockTransport(handler)) as api:
        with pytest.raises(GameTransportError):
            await api.get_status("ABC234")
