from fastapi import APIRouter, Depends, Query

from lostmap.core.client import MapClient
from lostmap.utils.auth_helper import get_map_client

router = APIRouter()


@router.get("")
async def search_location(
    q: str = Query(..., max_length=200),
    client: MapClient = Depends(get_map_client),
):
    location = await client.search(q)
    return {"marker": location.model_dump()}


@router.get("/marker")
async def get_marker(client: MapClient = Depends(get_map_client)):
    marker = client.search_marker
    return {"marker": marker.model_dump() if marker else None}


@router.delete("/marker")
async def clear_marker(client: MapClient = Depends(get_map_client)):
    client.clear_search()
    return {"marker": None}
