from fastapi import APIRouter, Depends, Query

from store_api import store
from store_api.config import StoreSettings, get_store_settings
from store_api.games import service
from store_api.games.schema import GameEntry, GameSubmission, SaveBatchResponse
from store_api.shared.schemas import ErrorResponse

router = APIRouter(
    prefix="/api",
    tags=["games"],
    responses={422: {"model": ErrorResponse}},
)


@router.post("/postTicTacToeGames", response_model=SaveBatchResponse, status_code=201)
async def post_games(body: list[GameSubmission]):
    saved = await service.save_batch(body)
    return SaveBatchResponse(saved=saved, total=await store.count_games())


@router.get("/getTicTacToeGames/", response_model=list[GameEntry])
async def get_games(
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    settings: StoreSettings = Depends(get_store_settings),
):
    limit = min(limit or settings.HISTORY_LIMIT, settings.MAX_HISTORY_LIMIT)
    return await service.get_history(limit=limit, offset=offset)


@router.get(
    "/getTicTacToeGames/{game_id}",
    response_model=GameEntry,
    responses={404: {"model": ErrorResponse}},
)
async def get_game(game_id: str):
    return await service.get_game(game_id)
