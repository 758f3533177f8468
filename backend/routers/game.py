"""Mom vs Dad game API router."""
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
import logging

from backend.database import AsyncSessionLocal
from backend.dependencies import get_round_controller
from backend.schemas.game import (
    AdminLoginResponse,
    AdminPinRequest,
    CreateSessionRequest,
    CreateSessionResponse,
    JoinSessionRequest,
    JoinSessionResponse,
    NextRoundResponse,
    RevealRequest,
    RevealResponse,
    SessionStatusResponse,
    StartGameRequest,
    StartGameResponse,
    VoteRequest,
    VoteResponse,
)
from backend.services.game import GameError, RoundController
from backend.services.game.game_websocket_manager import GAME_TOPIC, TOPICS, get_game_websocket_manager
from backend.services.game.session_service import GameSessionService, normalize_session_code

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/game", tags=["game"])
ws_manager = get_game_websocket_manager()


@router.post("/sessions", response_model=CreateSessionResponse)
async def create_session(
    request: CreateSessionRequest,
    controller: RoundController = Depends(get_round_controller),
):
    """Create a session. The response carries the admin PIN; keep it secret."""
    try:
        data = await controller.create(
            request.role_a_name,
            request.role_b_name,
            total_rounds=request.total_rounds,
            admin_name=request.admin_name,
            theme=request.theme,
            intensity=request.intensity,
            max_players=request.max_players,
        )
        return CreateSessionResponse(**data)
    except GameError:
        raise
    except Exception as e:
        logger.error(f"Error creating game session: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create session")


@router.post("/sessions/{session_code}/join", response_model=JoinSessionResponse)
async def join_session(
    session_code: str,
    request: JoinSessionRequest,
    controller: RoundController = Depends(get_round_controller),
):
    try:
        return JoinSessionResponse(**await controller.join(normalize_session_code(session_code), request.name))
    except GameError:
        raise
    except Exception as e:
        logger.error(f"Error joining session {session_code}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to join session")


@router.post("/sessions/{session_code}/admin", response_model=AdminLoginResponse)
async def admin_login(
    session_code: str,
    request: AdminPinRequest,
    controller: RoundController = Depends(get_round_controller),
):
    """Verify the admin PIN, e.g. when the host reopens the game on another device."""
    try:
        return AdminLoginResponse(**await controller.admin_login(normalize_session_code(session_code), request.admin_pin))
    except GameError:
        raise
    except Exception as e:
        logger.error(f"Error during admin login for {session_code}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to verify admin")


@router.post("/sessions/{session_code}/start", response_model=StartGameResponse)
async def start_game(
    session_code: str,
    request: StartGameRequest,
    controller: RoundController = Depends(get_round_controller),
):
    """Generate all scenarios and open voting on round 1."""
    try:
        data = await controller.start(
            normalize_session_code(session_code),
            request.admin_pin,
            total_rounds=request.total_rounds,
            intensity=request.intensity,
            theme=request.theme,
        )
        return StartGameResponse(**data)
    except GameError:
        raise
    except Exception as e:
        logger.error(f"Error starting session {session_code}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to start game")


@router.post("/sessions/{session_code}/vote", response_model=VoteResponse)
async def submit_vote(
    session_code: str,
    request: VoteRequest,
    controller: RoundController = Depends(get_round_controller),
):
    """Cast or change a vote. Re-submitting the same choice is a no-op."""
    try:
        data = await controller.vote(
            normalize_session_code(session_code),
            request.name,
            request.round_number,
            request.choice,
        )
        return VoteResponse(**data)
    except GameError:
        raise
    except Exception as e:
        logger.error(f"Error submitting vote in {session_code}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to submit vote")


@router.post("/sessions/{session_code}/reveal", response_model=RevealResponse)
async def reveal_round(
    session_code: str,
    request: RevealRequest,
    controller: RoundController = Depends(get_round_controller),
):
    try:
        data = await controller.reveal(
            normalize_session_code(session_code),
            request.admin_pin,
            request.round_number,
            actual_choice=request.actual_choice,
        )
        return RevealResponse(**data)
    except GameError:
        raise
    except Exception as e:
        logger.error(f"Error revealing round in {session_code}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to reveal round")


@router.post("/sessions/{session_code}/next", response_model=NextRoundResponse)
async def next_round(
    session_code: str,
    request: AdminPinRequest,
    controller: RoundController = Depends(get_round_controller),
):
    """Advance to the next round, or complete the game after the final reveal."""
    try:
        return NextRoundResponse(**await controller.next_round(normalize_session_code(session_code), request.admin_pin))
    except GameError:
        raise
    except Exception as e:
        logger.error(f"Error advancing session {session_code}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to advance round")


@router.get("/sessions/{session_code}", response_model=SessionStatusResponse)
async def get_session_status(
    session_code: str,
    controller: RoundController = Depends(get_round_controller),
):
    """Full session snapshot. Clients poll this to reconcile missed events."""
    try:
        return SessionStatusResponse(**await controller.get_status(normalize_session_code(session_code)))
    except GameError:
        raise
    except Exception as e:
        logger.error(f"Error getting status for {session_code}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to get session status")


@router.websocket("/sessions/{session_code}/ws")
async def game_websocket_endpoint(websocket: WebSocket, session_code: str):
    """Subscribe to one topic of a session.

    Query params: ``topic`` (``lobby`` or ``game``, default ``game``) and an
    optional ``name`` used for logging. The server only pushes; a ``ping``
    text frame is answered with a ``pong`` event.
    """
    code = normalize_session_code(session_code)
    topic = websocket.query_params.get("topic", GAME_TOPIC)
    name = websocket.query_params.get("name")

    if topic not in TOPICS:
        await websocket.close(code=4000, reason="Unknown topic")
        return

    async with AsyncSessionLocal() as db:
        session = await GameSessionService(db).get_session_by_code(code)

    if not session:
        logger.warning(f"WebSocket subscription to unknown session {code}")
        await websocket.close(code=4004, reason="Session not found")
        return

    client_id = await ws_manager.connect(code, topic, websocket, display_name=name)
    logger.info(f"{client_id} subscribed to {topic}:{code} ({ws_manager.get_connection_count(code, topic)} connected)")
    try:
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_json({"type": "pong", "payload": {}})
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"Game WebSocket error for {client_id} on {topic}:{code}: {e}", exc_info=True)
    finally:
        await ws_manager.disconnect(code, topic, client_id)
