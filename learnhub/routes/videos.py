import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnhub.database import create_document, delete_document, get_db, get_document, get_documents, to_object_id, update_document
from learnhub.dependencies import authorize_roles, current_user, get_media, get_store
from learnhub.errors import Forbidden, NotFound, ValidationError
from learnhub.media import CloudinaryMedia
from learnhub.schemas import Principal, VideoUpdate
from learnhub.store import COLLECTION as USER_COLLECTION, CredentialStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["videos"])

COLLECTION = "video"


async def _with_tutor(db: AsyncIOMotorDatabase, videos: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Replace each video's tutor id with the tutor's name and email."""
    ids = {to_object_id(v.get("tutor")) for v in videos} - {None}
    tutors = {}
    if ids:
        async for u in db[USER_COLLECTION].find({"_id": {"$in": list(ids)}}, {"name": 1, "email": 1}):
            tutors[str(u["_id"])] = {"_id": str(u["_id"]), "name": u.get("name"), "email": u.get("email")}
    for v in videos:
        v["tutor"] = tutors.get(v.get("tutor"), v.get("tutor"))
    return videos


async def _load_owned(db: AsyncIOMotorDatabase, video_id: str, user: Principal) -> Dict[str, Any]:
    video = await get_document(db, COLLECTION, video_id)
    if not video:
        raise NotFound(f"Video not found with id: {video_id}")
    if user.role != "admin" and video.get("tutor") != user.id:
        raise Forbidden("You can only change your own videos")
    return video


@router.post("/video/upload")
async def upload_video(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    user: Principal = Depends(authorize_roles("tutor")),
    db: AsyncIOMotorDatabase = Depends(get_db),
    media: CloudinaryMedia = Depends(get_media),
    store: CredentialStore = Depends(get_store),
):
    if not title or not description or file is None:
        raise ValidationError("Please provide both title, description, and video file.")

    ref = await media.upload(file.file, resource_type="video")
    video = await create_document(db, COLLECTION, {
        "title": title,
        "description": description,
        "video": ref.model_dump(),
        "tutor": user.id,
    })
    await store.add_video(user.id, video["_id"])
    logger.info("Video uploaded id=%s tutor=%s", video["_id"], user.id)
    return JSONResponse(
        status_code=201,
        content={"success": True, "message": "Video uploaded successfully", "video": video},
    )


@router.get("/user/videos")
async def get_user_videos(
    user: Principal = Depends(authorize_roles("tutor")),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    videos = await get_documents(db, COLLECTION, {"tutor": user.id}, limit=0)
    return {"success": True, "videos": videos}


@router.get("/videos")
async def get_all_videos(db: AsyncIOMotorDatabase = Depends(get_db)):
    videos = await get_documents(db, COLLECTION, {}, limit=0)
    return {"success": True, "videos": await _with_tutor(db, videos)}


@router.get("/video/{video_id}")
async def get_video_details(video_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    video = await get_document(db, COLLECTION, video_id)
    if not video:
        raise NotFound(f"Video not found with id {video_id}")
    return {"success": True, "video": (await _with_tutor(db, [video]))[0]}


@router.put("/video/update/{video_id}")
async def update_video_details(
    video_id: str,
    payload: VideoUpdate,
    user: Principal = Depends(current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    await _load_owned(db, video_id, user)
    changes = payload.model_dump(exclude_none=True)
    if not changes:
        raise ValidationError("Please provide a title or description to update")
    video = await update_document(db, COLLECTION, video_id, changes)
    return {"success": True, "message": "Video details updated successfully", "video": video}


@router.delete("/video/delete/{video_id}")
async def delete_video(
    video_id: str,
    user: Principal = Depends(current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
    store: CredentialStore = Depends(get_store),
):
    video = await _load_owned(db, video_id, user)
    await delete_document(db, COLLECTION, video_id)
    await store.remove_video(video["tutor"], video["_id"])
    return {"success": True, "message": "Video deleted successfully"}
