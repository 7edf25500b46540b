import logging
from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from .api import router as api_router
from .realtime import make_log_controller, make_reconciler, serve
from .settings import settings

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), "INFO"))

app = FastAPI(title="Bridge Admin", version="0.1.0")
app.include_router(api_router)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

@app.websocket("/ws/log")
async def log_socket(ws: WebSocket, cols: int = 80, rows: int = 24):
    await serve(ws, [await make_log_controller()], cols=cols, rows=rows)

@app.websocket("/ws/accessories")
async def accessories_socket(ws: WebSocket):
    await serve(ws, [await make_reconciler()])

@app.websocket("/ws/session")
async def session_socket(ws: WebSocket, cols: int = 80, rows: int = 24):
    controllers = [await make_log_controller(), await make_reconciler()]
    await serve(ws, controllers, cols=cols, rows=rows)

@app.get("/")
def root():
    return {"name": "bridge-admin", "status": "ok"}
