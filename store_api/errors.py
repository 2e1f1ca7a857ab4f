from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class StoreError(Exception):
    def __init__(self, code: str, message: str, status: int = 400, details: dict | None = None):
        self.code = code
        self.message = message
        self.status = status
        self.details = details or {}
        super().__init__(message)


class GameNotFoundError(StoreError):
    def __init__(self, game_id: str):
        super().__init__("GAME_NOT_FOUND", f"Game '{game_id}' not found", 404, {"id": game_id})


class InvalidBatchError(StoreError):
    def __init__(self, message: str = "Invalid game batch", details: dict | None = None):
        super().__init__("INVALID_BATCH", message, 422, details)


def _envelope(status: int, code: str, message: str, details: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={
            "error": {
                "code": code,
                "message": message,
                "details": details or {},
            }
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        return _envelope(exc.status, exc.code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return _envelope(
            422,
            "VALIDATION_ERROR",
            "Invalid request body",
            {"errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        return _envelope(500, "INTERNAL_ERROR", str(exc) if app.debug else "Internal server error")
