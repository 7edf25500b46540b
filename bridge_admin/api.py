from typing import List
from fastapi import APIRouter, HTTPException, Query, Response
from .accessories import Room, get_accessory_layout, save_accessory_layout
from .server_ops import server
from .settings import settings

router = APIRouter(prefix="/api")

@router.put("/server/restart", status_code=202)
async def restart_server():
    return await server.restart()

@router.put("/server/reset-accessory")
async def reset_accessory():
    await server.reset_accessory()
    return {"ok": True}

@router.get("/server/qrcode.svg")
async def qrcode():
    svg = await server.qrcode_svg()
    if svg is None:
        raise HTTPException(404, "Pairing information not found")
    return Response(content=svg, media_type="image/svg+xml")

@router.get("/accessories/layout")
async def get_layout(user: str = Query(...)):
    return await get_accessory_layout(settings.layout_path, user)

@router.post("/accessories/layout")
async def save_layout(layout: List[Room], user: str = Query(...)):
    return await save_accessory_layout(settings.layout_path, user, [r.model_dump() for r in layout])
