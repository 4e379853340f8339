from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional
import logging

from config import Settings, get_settings
from runtime import GameRuntime
from api import players, rounds


def create_app(settings: Optional[Settings] = None, runtime: Optional[GameRuntime] = None) -> FastAPI:
    settings = settings or get_settings()

    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        level=settings.log_level.upper()
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: 建立並啟動 Engine（計時器跑在這個 event loop 上）
        app.state.runtime = runtime or GameRuntime(settings)
        await app.state.runtime.start()
        yield
        # Shutdown: 清除所有計時器
        await app.state.runtime.stop()

    app = FastAPI(
        title="Crash Game API",
        description="Round engine for a crash wagering game simulation",
        version="1.0.0",
        lifespan=lifespan
    )

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(rounds.router)
    app.include_router(players.router)

    @app.get("/")
    def root():
        return {"message": "Crash Game API", "status": "ok"}

    @app.get("/health")
    def health():
        running = hasattr(app.state, "runtime") and app.state.runtime.engine.is_running
        return {"status": "healthy" if running else "stopped"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
