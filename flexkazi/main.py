from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import uvicorn

from flexkazi.core.config import get_settings
from flexkazi.core.errors import FlexKaziError
from flexkazi.core.logging import get_logger, setup_logging
from flexkazi.routers import auth as auth_router
from flexkazi.routers import profile as profile_router
from flexkazi.routers import realtime as realtime_router
from flexkazi.routers import tasks as tasks_router
from flexkazi.routers import views as views_router

setup_logging(get_settings().log_level)
logger = get_logger(__name__)

app = FastAPI(title="FlexKazi")

app.include_router(auth_router.router)
app.include_router(profile_router.router)
app.include_router(tasks_router.router)
app.include_router(views_router.router)
app.include_router(realtime_router.router)


@app.exception_handler(FlexKaziError)
async def flexkazi_error_handler(request: Request, exc: FlexKaziError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)


@app.get("/")
async def root():
    return {"message": "Welcome to FlexKazi"}


def main():
    """Run the FastAPI application."""
    uvicorn.run(
        "flexkazi.main:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level=get_settings().log_level.lower(),
    )


if __name__ == "__main__":
    main()
