"""FastAPI app: rooms, lobby, night actions, votes, chat and deadline ticks."""

import logging
import os

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.game_store import get_controller, get_store
from api.models import (
    ActionPublic,
    ActionRequest,
    JoinRequest,
    JoinResponse,
    MessagePublic,
    MessageRequest,
    PlayerPublic,
    PlayerRequest,
    RoomCreateRequest,
    RoomPublic,
    RoomResponse,
    TransitionPublic,
    VotePublic,
    VoteRequest,
    game_state_to_public,
    message_to_public,
    player_to_public,
    room_to_public,
    transition_to_public,
)
from game.controller import DEFAULT_MESSAGE_LIMIT
from game.errors import (
    AuthorizationError,
    DuplicateSubmissionError,
    InvalidRequestError,
    MafiaError,
    NotFoundError,
    StoreError,
)
from game.lobby import create_room, find_room, join_room, leave_room
from game.state import SessionContext

ENV_LOG_LEVEL = "MAFIA_LOG_LEVEL"
ENV_CORS_ORIGINS = "MAFIA_CORS_ORIGINS"

logging.basicConfig(level=os.environ.get(ENV_LOG_LEVEL, "INFO").upper())
logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    raw = os.environ.get(ENV_CORS_ORIGINS, "*")
    return [o.strip() for o in raw.split(",") if o.strip()] or ["*"]


app = FastAPI(title="Mafia Session API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Most specific class first
_STATUS_FOR_ERROR = (
    (NotFoundError, 404),
    (AuthorizationError, 403),
    (DuplicateSubmissionError, 409),
    (InvalidRequestError, 400),
    (StoreError, 503),
)


@app.exception_handler(MafiaError)
async def mafia_error_handler(request: Request, exc: MafiaError) -> JSONResponse:
    status = next((code for cls, code in _STATUS_FOR_ERROR if isinstance(exc, cls)), 400)
    if status == 503:
        logger.warning("Store failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content={"detail": str(exc)})


def _room_response(room_id: str, viewer_id: str | None) -> RoomResponse:
    controller = get_controller()
    room = get_store().get_room(room_id)
    if room is None:
        raise NotFoundError("Room not found")
    ctx = SessionContext(room_id=room_id, player_id=viewer_id)
    return RoomResponse(
        room=room_to_public(room),
        game_state=game_state_to_public(controller.game_state(room_id), controller.clock()),
        players=[player_to_public(p) for p in controller.roster(ctx)],
    )


@app.post("/rooms", response_model=JoinResponse, status_code=201, tags=["Rooms"], summary="Create room")
def create_room_endpoint(body: RoomCreateRequest):
    """Create a room in the lobby and seat its creator."""
    controller = get_controller()
    room, creator = create_room(
        get_store(),
        body.creator_name,
        body.capacity,
        name=body.name,
        account_id=body.account_id,
        rng=controller.rng,
    )
    return JoinResponse(room=room_to_public(room), player=player_to_public(creator))


@app.get("/rooms/code/{code}", response_model=RoomPublic, tags=["Rooms"], summary="Find room by join code")
def find_room_endpoint(code: str):
    return room_to_public(find_room(get_store(), code))


@app.get("/rooms/{room_id}", response_model=RoomResponse, tags=["Rooms"], summary="Get room")
def get_room_endpoint(room_id: str, viewer_id: str | None = Query(default=None)):
    """Room, game state and roster as seen by viewer_id (roles redacted)."""
    return _room_response(room_id, viewer_id)


@app.post("/rooms/{room_id}/join", response_model=JoinResponse, status_code=201, tags=["Rooms"], summary="Join room")
def join_room_endpoint(room_id: str, body: JoinRequest):
    """Take a seat. Joining a game in progress seats a spectator."""
    player = join_room(get_store(), room_id, body.name, account_id=body.account_id)
    room = get_store().get_room(room_id)
    return JoinResponse(room=room_to_public(room), player=player_to_public(player))


@app.post("/rooms/{room_id}/leave", response_model=PlayerPublic, tags=["Rooms"], summary="Leave room")
def leave_room_endpoint(room_id: str, body: PlayerRequest):
    player = leave_room(get_store(), SessionContext(room_id=room_id, player_id=body.player_id))
    return player_to_public(player)


@app.post("/rooms/{room_id}/start", response_model=RoomResponse, tags=["Game"], summary="Start game")
def start_game_endpoint(room_id: str, body: PlayerRequest):
    """Creator only: assign roles and open night 1."""
    get_controller().start_game(SessionContext(room_id=room_id, player_id=body.player_id))
    return _room_response(room_id, body.player_id)


@app.post("/rooms/{room_id}/actions", response_model=ActionPublic, status_code=201, tags=["Game"], summary="Submit night action")
def submit_action_endpoint(room_id: str, body: ActionRequest):
    action = get_controller().submit_action(
        SessionContext(room_id=room_id, player_id=body.player_id),
        body.round_number,
        body.target_id,
        action_type=body.action_type,
    )
    return ActionPublic(
        id=action.id,
        round_number=action.round_number,
        action_type=action.action_type.value,
        target_id=action.target_id,
    )


@app.post("/rooms/{room_id}/votes", response_model=VotePublic, status_code=201, tags=["Game"], summary="Cast day vote")
def submit_vote_endpoint(room_id: str, body: VoteRequest):
    """Cast a vote; voting again in the same day replaces the earlier vote."""
    vote = get_controller().submit_vote(
        SessionContext(room_id=room_id, player_id=body.player_id),
        body.round_number,
        body.target_id,
    )
    return VotePublic(id=vote.id, round_number=vote.round_number, voter_id=vote.voter_id, target_id=vote.target_id)


@app.post("/rooms/{room_id}/messages", response_model=MessagePublic, status_code=201, tags=["Chat"], summary="Send message")
def send_message_endpoint(room_id: str, body: MessageRequest):
    message = get_controller().send_message(
        SessionContext(room_id=room_id, player_id=body.player_id),
        body.body,
        category=body.category,
    )
    return message_to_public(message)


@app.get("/rooms/{room_id}/messages", response_model=list[MessagePublic], tags=["Chat"], summary="Read messages")
def read_messages_endpoint(
    room_id: str,
    viewer_id: str | None = Query(default=None),
    limit: int = Query(default=DEFAULT_MESSAGE_LIMIT, ge=1, le=500),
):
    """Messages viewer_id may see in the current phase, oldest first."""
    ctx = SessionContext(room_id=room_id, player_id=viewer_id)
    return [message_to_public(m) for m in get_controller().read_messages(ctx, limit=limit)]


@app.get("/rooms/{room_id}/players", response_model=list[PlayerPublic], tags=["Rooms"], summary="Roster")
def roster_endpoint(room_id: str, viewer_id: str | None = Query(default=None)):
    ctx = SessionContext(room_id=room_id, player_id=viewer_id)
    return [player_to_public(p) for p in get_controller().roster(ctx)]


@app.post("/rooms/{room_id}/tick", response_model=TransitionPublic, tags=["Game"], summary="Advance if due")
def tick_endpoint(room_id: str):
    """Resolve the current phase if its deadline has passed. Any client may call this at any time."""
    return transition_to_public(get_controller().advance_if_due(room_id))


@app.get("/health", tags=["System"], summary="Health check")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host="0.0.0.0", port=8000, reload=True)
