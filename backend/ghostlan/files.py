import os
import time
from pathlib import Path
from fastapi import UploadFile


def message_type_for(mime: str | None) -> str:
    mime = (mime or "").lower()
    if mime.startswith("image/"):
        return "image"
    if mime.startswith("video/"):
        return "video"
    return "document"


def stored_name(original: str | None) -> str:
    base = os.path.basename(original or "") or "upload"
    return f"{int(time.time() * 1000)}-{base}"


async def save_upload(upload: UploadFile, directory: str | Path, chunk_size: int = 1024 * 1024) -> str:
    """Stream the upload into directory and return the stored file name."""
    name = stored_name(upload.filename)
    target = Path(directory) / name
    with open(target, "wb") as out:
        while chunk := await upload.read(chunk_size):
            out.write(chunk)
    return name
