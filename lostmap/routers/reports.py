from typing import Optional
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from lostmap.core.client import MapClient
from lostmap.core.draft import MAX_UPLOAD_BYTES, MAX_UPLOAD_SIZE_MB, Draft, PendingImage
from lostmap.core.record_store import ReportEntry
from lostmap.utils.auth_helper import get_map_client
from lostmap.utils.form_validator import DraftUpdateForm, MapClickForm
from lostmap.utils.heatmap import heat_points


router = APIRouter()


def entry_response(entry: ReportEntry) -> dict:
    data = entry.report.model_dump(mode="json")
    data["street_view_url"] = entry.report.street_view_url
    data["is_owner"] = entry.is_owner
    data["can_edit"] = entry.can_edit
    return data


def draft_response(draft: Optional[Draft]) -> Optional[dict]:
    if draft is None:
        return None

    return {
        "mode": draft.mode.value,
        "target_id": draft.target_id,
        "description": draft.description,
        "position": draft.position.model_dump() if draft.position else None,
        "image": draft.pending_image.filename if draft.pending_image else None,
    }


@router.get("")
async def get_all_reports(client: MapClient = Depends(get_map_client)):
    return {
        "reports": [entry_response(entry) for entry in client.records.entries()],
    }


@router.get("/mine")
async def get_my_reports(client: MapClient = Depends(get_map_client)):
    return {
        "reports": [
            entry_response(entry)
            for entry in client.records.entries()
            if entry.is_owner
        ],
    }


@router.get("/heatmap")
async def get_heatmap(client: MapClient = Depends(get_map_client)):
    return {"points": heat_points(client.records.all())}


@router.get("/draft")
async def get_draft(client: MapClient = Depends(get_map_client)):
    return {"draft": draft_response(client.drafts.current())}


@router.post("/draft")
async def begin_report(form: MapClickForm, client: MapClient = Depends(get_map_client)):
    draft = client.click_map(form.latitude, form.longitude)
    return {"draft": draft_response(draft)}


@router.post("/{report_id}/edit")
async def begin_edit(report_id: str, client: MapClient = Depends(get_map_client)):
    draft = client.start_edit(report_id)
    return {"draft": draft_response(draft)}


@router.patch("/draft")
async def update_draft(form: DraftUpdateForm, client: MapClient = Depends(get_map_client)):
    draft = client.drafts.update(description=form.description)
    return {"draft": draft_response(draft)}


@router.put("/draft/image")
async def attach_image(
    image: UploadFile = File(...),
    client: MapClient = Depends(get_map_client),
):
    raw_bytes = await image.read()

    if len(raw_bytes) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail=f"Image exceeds {MAX_UPLOAD_SIZE_MB}MB limit")

    draft = client.drafts.update(
        pending_image=PendingImage(
            filename=image.filename or "photo",
            data=raw_bytes,
            content_type=image.content_type,
        )
    )
    return {"draft": draft_response(draft)}


@router.delete("/draft")
async def cancel_draft(client: MapClient = Depends(get_map_client)):
    client.drafts.cancel()
    return {"draft": None}


@router.post("/draft/commit")
async def commit_draft(client: MapClient = Depends(get_map_client)):
    report_id = await client.commit()
    return {"id": report_id}
