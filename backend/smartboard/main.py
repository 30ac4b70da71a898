import os
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from smartboard.orchestrator import Orchestrator
from smartboard.scheduler import RequestScheduler
from smartboard.session import BoardSession

# main.py is at backend/smartboard/main.py, so two parents up is the project root.
_env_path = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(_env_path, override=True)

sessions: dict[str, BoardSession] = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One scheduler for the whole process: every session shares the same
    # generative-service quota, so they share the same queue.
    app.state.scheduler = RequestScheduler()
    print(
        f"SmartBoard backend starting up (request interval "
        f"{app.state.scheduler.interval}s, rate-limit backoff {app.state.scheduler.backoff}s)..."
    )
    yield
    print("SmartBoard backend shutting down...")


app = FastAPI(title="SmartBoard API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[os.getenv("FRONTEND_URL", "http://localhost:3000")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    return {"status": "ok", "version": "0.1.0"}


@app.websocket("/ws/{session_id}")
async def websocket_endpoint(websocket: WebSocket, session_id: str):
    await websocket.accept()

    if session_id not in sessions:
        sessions[session_id] = BoardSession(session_id=session_id)

    session = sessions[session_id]
    orchestrator: Orchestrator | None = None

    try:
        orchestrator = Orchestrator(
            session=session,
            websocket=websocket,
            scheduler=websocket.app.state.scheduler,
        )
        await orchestrator.on_connect()
        while True:
            data = await websocket.receive_json()
            await orchestrator.handle_message(data)
    except WebSocketDisconnect:
        print(f"Session {session_id} disconnected")
        sessions.pop(session_id, None)
    except Exception as e:
        print(f"Error in session {session_id}: {e}")
        # WebSocket close reason has a 123-byte hard limit, truncate to be safe
        await websocket.close(code=1011, reason=str(e)[:100])
        sessions.pop(session_id, None)
    finally:
        if orchestrator is not None:
            await orchestrator.cleanup()


@app.get("/session/new")
async def new_session():
    session_id = str(uuid.uuid4())
    return {"session_id": session_id}
