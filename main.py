import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from squads.config import LOG_LEVEL
from squads.database import create_db_and_tables
from squads.errors import TeamServiceError
from squads.services.notifications import ConnectionRegistry, Notifier


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    # Startup: Create database tables
    create_db_and_tables()
    yield
    # Shutdown: cleanup if needed


# Initialize FastAPI app
app = FastAPI(
    title="Fantasy Cricket Permanent Squads",
    description="Form permanent four-player squads and score them across a tournament",
    version="1.0.0",
    lifespan=lifespan
)

# Live connections and the notifier that pushes to them
app.state.connections = ConnectionRegistry()
app.state.notifier = Notifier(app.state.connections)


@app.exception_handler(TeamServiceError)
async def team_service_error_handler(request: Request, exc: TeamServiceError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "detail": exc.message}
    )


# Include routers
from squads.routers import teams, realtime

app.include_router(teams.router, tags=["teams"])
app.include_router(realtime.router, tags=["realtime"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
