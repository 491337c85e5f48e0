import logging
import time
from pathlib import Path
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile
from supabase import Client

from ..config import get_settings
from ..dependencies import get_current_user
from ..schemas.post import FOOD_CATEGORIES, ImageUploadOut, PostCreate, PostOut
from ..schemas.user import UserData
from ..supabase_client import get_supabase_client

router = APIRouter(prefix="/posts", tags=["posts"])
logger = logging.getLogger(__name__)

IMAGE_TYPES = ("jpeg", "png", "gif", "webp")
MORE_FROM_AUTHOR_LIMIT = 6


def _image_type(filename: str | None) -> str:
    """Normalised image extension; `jpg` becomes `jpeg`, unknown becomes `jpeg`."""
    ext = Path(filename or "").suffix.lstrip(".").lower()
    if ext == "jpg":
        ext = "jpeg"
    return ext if ext in IMAGE_TYPES else "jpeg"


@router.get("", response_model=list[PostOut])
def list_posts(
    category: str | None = Query(None, description="Filter by food category"),
    limit: int = Query(20, ge=1, le=100, description="Max number of posts to return"),
    offset: int = Query(0, ge=0, description="Number of posts to skip"),
    supabase: Client = Depends(get_supabase_client),
):
    """Feed of posts, newest first."""
    query = supabase.table(get_settings().POSTS_TABLE).select("*").order("created_at", desc=True)
    if category:
        query = query.eq("category", category)
    response = query.range(offset, offset + limit - 1).execute()
    return response.data or []


@router.get("/categories", response_model=list[str])
def list_categories():
    return FOOD_CATEGORIES


@router.get("/map", response_model=list[PostOut])
def map_posts(
    north: float | None = Query(None, ge=-90, le=90),
    south: float | None = Query(None, ge=-90, le=90),
    east: float | None = Query(None, ge=-180, le=180),
    west: float | None = Query(None, ge=-180, le=180),
    limit: int = Query(100, ge=1, le=500),
    supabase: Client = Depends(get_supabase_client),
):
    """Posts that carry coordinates, optionally restricted to a bounding box."""
    bounds = (north, south, east, west)
    query = supabase.table(get_settings().POSTS_TABLE).select("*")
    if all(v is not None for v in bounds):
        if south > north:
            raise HTTPException(status_code=400, detail="south must not exceed north")
        query = (
            query.gte("latitude", south)
            .lte("latitude", north)
            .gte("longitude", west)
            .lte("longitude", east)
        )
    elif any(v is not None for v in bounds):
        raise HTTPException(status_code=400, detail="Bounding box needs north, south, east and west")
    else:
        query = query.not_.is_("latitude", "null").not_.is_("longitude", "null")
    response = query.order("created_at", desc=True).limit(limit).execute()
    return response.data or []


@router.get("/{post_id}", response_model=PostOut)
def get_post(post_id: str, supabase: Client = Depends(get_supabase_client)):
    response = supabase.table(get_settings().POSTS_TABLE).select("*").eq("id", post_id).limit(1).execute()
    if not response.data:
        raise HTTPException(status_code=404, detail="Post not found")
    return response.data[0]


@router.get("/{post_id}/more", response_model=list[PostOut])
def more_from_author(post_id: str, supabase: Client = Depends(get_supabase_client)):
    """Other posts by the author of `post_id`, newest first."""
    table = get_settings().POSTS_TABLE
    post = supabase.table(table).select("id, user_id").eq("id", post_id).limit(1).execute()
    if not post.data:
        raise HTTPException(status_code=404, detail="Post not found")

    response = (
        supabase.table(table)
        .select("*")
        .eq("user_id", post.data[0]["user_id"])
        .neq("id", post_id)
        .order("created_at", desc=True)
        .limit(MORE_FROM_AUTHOR_LIMIT)
        .execute()
    )
    return response.data or []


@router.post("", response_model=PostOut, status_code=201)
def create_post(
    payload: PostCreate,
    supabase: Client = Depends(get_supabase_client),
    user: UserData = Depends(get_current_user),
):
    row = payload.to_row(user.id, user.username)
    try:
        response = supabase.table(get_settings().POSTS_TABLE).insert(row).execute()
    except Exception as exc:
        logger.error("Failed to create post for user=%s: %s", user.id, exc)
        raise HTTPException(status_code=500, detail="Failed to create post. Please try again.") from exc
    if not response.data:
        raise HTTPException(status_code=500, detail="Failed to create post. Please try again.")
    return response.data[0]


@router.post("/images", response_model=ImageUploadOut, status_code=201)
async def upload_post_image(
    file: UploadFile,
    supabase: Client = Depends(get_supabase_client),
    user: UserData = Depends(get_current_user),
):
    """Upload a post photo to the media bucket and return its public URL."""
    settings = get_settings()
    image_type = _image_type(file.filename)
    object_key = f"posts/{user.id}/{int(time.time() * 1000)}-{uuid4().hex[:6]}.{image_type}"
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Invalid file. Please select a valid image.")

    storage = supabase.storage.from_(settings.SUPABASE_STORAGE_BUCKET)
    try:
        storage.upload(
            object_key,
            content,
            {"content-type": f"image/{image_type}", "cache-control": "3600", "upsert": "false"},
        )
    except Exception as exc:
        message = str(exc)
        logger.error("Image upload failed for %s: %s", object_key, message)
        if "row-level security" in message:
            raise HTTPException(status_code=403, detail="Permission denied. Please check your login status.") from exc
        if "bucket" in message.lower():
            raise HTTPException(status_code=500, detail="Storage configuration issue. Please contact support.") from exc
        raise HTTPException(status_code=500, detail=f"Failed to upload image: {message}") from exc

    public_url = storage.get_public_url(object_key)
    if not public_url:
        raise HTTPException(status_code=500, detail="Failed to generate public URL")
    return {"path": object_key, "url": public_url}
