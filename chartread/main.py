from __future__ import annotations

import asyncio
import base64
from typing import Any, Literal, Optional

from fastapi import Body, Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from pydantic import BaseModel

from .core.config import settings
from .core.logging import setup_logger
from .vision.annotate import ChartAnnotator, FallbackAnnotator, ModelAnnotator
from .vision.client import ModelClient, build_model_client
from .vision.errors import ImageLoadError
from .vision.overlay import OverlayAnnotator, render_overlay
from .vision.pipeline import analyze_and_annotate, analyze_chart
from .vision.plan import build_annotation_plan
from .vision.schema import AnnotatedRead, AnnotationPlan, Theme
from .vision.validate import validate

logger = setup_logger("chartread", settings.log_level)

app = FastAPI(title="Chart Read API")
app.state.model_client = build_model_client(settings)

Renderer = Literal["auto", "model", "overlay"]

_STATUS_BY_KIND = {
    "configuration": 503,
    "model": 502,
    "empty_response": 502,
    "parse": 502,
    "validation": 422,
}


def get_model_client(request: Request) -> Optional[ModelClient]:
    return request.app.state.model_client


def _pick_annotator(renderer: str, client: Optional[ModelClient], theme: Theme) -> ChartAnnotator:
    model = ModelAnnotator(client, settings.annotation_models)
    if renderer == "model":
        return model
    overlay = OverlayAnnotator(theme)
    if renderer == "overlay":
        return overlay
    return FallbackAnnotator(model, overlay)


def _image_data_url(b64: Optional[str]) -> Optional[str]:
    if not b64:
        return None
    return f"data:image/png;base64,{b64}"


class OverlayRequest(BaseModel):
    image_base64: str
    read: dict[str, Any]
    plan: Optional[AnnotationPlan] = None
    theme: Optional[Theme] = None


@app.get("/")
def root():
    return {"status": "Chart Read API running"}


@app.get("/health")
def health():
    return {"ok": True}


@app.post("/v1/analyze")
async def analyze(
    image: UploadFile = File(...),
    question: Optional[str] = Form(None),
    annotate: bool = Form(True),
    renderer: Renderer = Form("auto"),
    theme: Optional[Theme] = Form(None),
    client: Optional[ModelClient] = Depends(get_model_client),
):
    raw = await image.read()
    if not raw:
        raise HTTPException(status_code=400, detail="Empty image upload (image)")

    if question in ("", "string"):
        question = None

    image_b64 = base64.b64encode(raw).decode("utf-8")

    async def _run() -> AnnotatedRead:
        if not annotate:
            read = await analyze_chart(image_b64, question, client=client, model=settings.vision_model)
            return AnnotatedRead(analysis=read)
        return await analyze_and_annotate(
            image_b64,
            question,
            client=client,
            model=settings.vision_model,
            annotator=_pick_annotator(renderer, client, theme or settings.overlay_theme),
        )

    try:
        result = await asyncio.wait_for(_run(), timeout=settings.vision_timeout_sec)
    except asyncio.TimeoutError:
        raise HTTPException(status_code=504, detail="Chart read timed out. Try a clearer/closer screenshot.")

    analysis = result.analysis
    if not analysis.success:
        raise HTTPException(
            status_code=_STATUS_BY_KIND.get(analysis.error_kind, 500),
            detail=analysis.model_dump(),
        )

    return {
        "analysis": analysis.data.model_dump(by_alias=True),
        "annotated_image": _image_data_url(result.annotated_image),
    }


@app.post("/v1/validate")
def validate_read(payload: Any = Body(...)):
    result = validate(payload)
    return result.model_dump(by_alias=True)


@app.post("/v1/overlay")
async def overlay(req: OverlayRequest):
    checked = validate(req.read)
    if not checked.valid:
        raise HTTPException(status_code=422, detail={"error": checked.error, "field": checked.field})

    read = checked.data
    plan = req.plan or build_annotation_plan(read, theme=req.theme or settings.overlay_theme)
    try:
        data_url = await render_overlay(req.image_base64, plan, read)
    except ImageLoadError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"image": data_url}
