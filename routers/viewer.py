"""Authenticated static assets for the browser viewer."""

from __future__ import annotations

import os

from fastapi import APIRouter, Depends, Request
from starlette.responses import Response
from starlette.staticfiles import StaticFiles

from modules.utils import require_credentials
from utils.deps import get_static_files

router = APIRouter(dependencies=[Depends(require_credentials)])


# must stay the last registered router; the path parameter matches everything
@router.get("/{asset_path:path}", include_in_schema=False)
async def viewer_asset(
    asset_path: str,
    request: Request,
    static: StaticFiles = Depends(get_static_files),
) -> Response:
    path = os.path.normpath(asset_path.lstrip("/")) if asset_path else "."
    return await static.get_response(path, request.scope)
