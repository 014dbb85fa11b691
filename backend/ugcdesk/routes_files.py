from __future__ import annotations

import re
from pathlib import Path

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from .services.enhancers import VOICEOVER_SUBDIR
from .settings import get_settings

VOICEOVER_FILE_RE = re.compile(r"^\d+\.mp3$")

router = APIRouter(prefix="/files", tags=["files"])


@router.get(f"/{VOICEOVER_SUBDIR}/{{filename}}")
async def get_voiceover_file(filename: str):
    if not VOICEOVER_FILE_RE.match(filename):
        raise HTTPException(status_code=404, detail="File not allowed")
    path = Path(get_settings().media_dir) / VOICEOVER_SUBDIR / filename
    if not path.exists() or not path.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path, media_type="audio/mpeg")
