from fastapi import FastAPI, Depends, File, Request, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pathlib import Path
from .config import settings
from .db import SessionLocal, init_db
from .schemas import ChangePasswordIn, ChangePasswordOut, LoginIn, LoginOut, UploadOut, UserOut
from .accounts import change_password, login
from .files import message_type_for, save_upload
from .registry import SessionRegistry
from .router import EventRouter
from .seed import seed_if_empty
from .store import ChatStore
import json
import logging

log = logging.getLogger(__name__)


def configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


app = FastAPI(title="GhostLAN Chat Server")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

UPLOAD_DIR = Path(settings.upload_dir)
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR), name="uploads")

store = ChatStore(SessionLocal)
registry = SessionRegistry()
router = EventRouter(store, registry)


# Dependency
def get_store() -> ChatStore:
    return store


@app.on_event("startup")
async def on_startup():
    configure_logging(settings.log_level)
    await init_db()
    if settings.seed_demo_data:
        await seed_if_empty(
            store,
            employees=settings.seed_employee_count,
            messages=settings.seed_message_count,
            password=settings.seed_default_password,
        )


@app.get("/health")
async def health():
    return {"status": "ok"}


# ---------------------- ACCOUNTS ----------------------
@app.get("/contacts", response_model=list[UserOut], response_model_by_alias=True)
async def contacts(db: ChatStore = Depends(get_store)):
    return await db.list_users()


@app.post("/login", response_model=LoginOut, response_model_exclude_none=True)
async def login_route(payload: LoginIn, db: ChatStore = Depends(get_store)):
    return await login(db, payload)


@app.post("/change-password", response_model=ChangePasswordOut, response_model_exclude_none=True)
async def change_password_route(payload: ChangePasswordIn, db: ChatStore = Depends(get_store)):
    return await change_password(db, payload)


# ---------------------- UPLOADS ----------------------
@app.post("/upload", response_model=UploadOut)
async def upload(request: Request, file: UploadFile | None = File(None)):
    if file is None or not file.filename:
        return JSONResponse(status_code=400, content={"success": False})
    name = await save_upload(file, UPLOAD_DIR)
    base = (settings.public_base_url or str(request.base_url)).rstrip("/")
    file_type = file.content_type or "application/octet-stream"
    return UploadOut(
        success=True,
        file_url=f"{base}/uploads/{name}",
        file_type=file_type,
        message_type=message_type_for(file_type),
    )


# ---------------------- WEBSOCKET ----------------------
# One socket per client. Frames are {"event": ..., "data": ...} both ways.
@app.websocket("/ws")
async def ws_events(ws: WebSocket):
    await ws.accept()
    log.info("socket connected from %s", ws.client)
    try:
        while True:
            frame = await ws.receive()
            if frame["type"] == "websocket.disconnect":
                break
            raw = frame.get("text")
            if raw is None:
                await registry.send_to(ws, "error", {"intent": None, "reason": "binary frames are not supported"})
                continue
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await registry.send_to(ws, "error", {"intent": None, "reason": "invalid json"})
                continue
            if not isinstance(msg, dict) or not isinstance(msg.get("event"), str):
                await registry.send_to(ws, "error", {"intent": None, "reason": "missing event"})
                continue
            await router.dispatch(ws, msg["event"], msg.get("data"))
    except WebSocketDisconnect:
        pass
    finally:
        router.disconnect(ws)
