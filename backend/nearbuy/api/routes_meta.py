import os

from fastapi import APIRouter, Request

router = APIRouter(tags=["meta"])


@router.get("/health")
def health():
    return {"ok": True}


@router.get("/version")
def version(request: Request):
    cfg = request.app.state.settings
    return {
        "version": cfg.APP_VERSION,
        "build": cfg.BUILD_ID,
        "git_commit": os.environ.get("GIT_COMMIT"),
    }
