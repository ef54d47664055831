from fastapi import APIRouter, Response

from packages.metrics import render_text

router = APIRouter()


@router.get("/metrics")
def metrics():
    return Response(content=render_text(), media_type="text/plain")
