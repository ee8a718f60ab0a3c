from fastapi import APIRouter, Depends
from pymongo import ReturnDocument
from pymongo.database import Database

from auth import get_current_user, get_db
from database import create_document, get_documents, now
from errors import Internal, NotFound
from helpers import api_response, find_owned, objid
from payloads import PlaylistRequest
from schemas import Playlist

router = APIRouter(prefix="/playlists", tags=["playlists"])


def _update_owned(db: Database, playlist_id: str, user_id, update: dict, action: str = "modify") -> dict:
    pid = objid(playlist_id, "playlist id")
    find_owned(db["playlist"], pid, user_id, "Playlist", action)
    update.setdefault("$set", {})["updated_at"] = now()
    updated = db["playlist"].find_one_and_update({"_id": pid}, update, return_document=ReturnDocument.AFTER)
    if updated is None:
        raise Internal("Failed to update playlist")
    return updated


@router.post("")
def create_playlist(
    payload: PlaylistRequest,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    playlist = Playlist(owner=current_user["_id"], name=payload.name, description=payload.description or "")
    playlist_id = create_document(db, "playlist", playlist)
    created = db["playlist"].find_one({"_id": objid(playlist_id)})
    if created is None:
        raise Internal("Failed to create playlist")
    return api_response(created, "Playlist created successfully", 201)


@router.get("/user/{user_id}")
def user_playlists(user_id: str, db: Database = Depends(get_db)):
    playlists = get_documents(db, "playlist", {"owner": objid(user_id, "user id")})
    return api_response(playlists, "User playlists fetched successfully")


@router.get("/{playlist_id}")
def get_playlist(playlist_id: str, db: Database = Depends(get_db)):
    playlist = db["playlist"].find_one({"_id": objid(playlist_id, "playlist id")})
    if playlist is None:
        raise NotFound("Playlist not found")
    return api_response(playlist, "Playlist fetched successfully")


@router.patch("/add/{video_id}/{playlist_id}")
def add_video(
    video_id: str,
    playlist_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    vid = objid(video_id, "video id")
    if not db["video"].find_one({"_id": vid}, {"_id": 1}):
        raise NotFound("Video not found")
    playlist = _update_owned(db, playlist_id, current_user["_id"], {"$addToSet": {"videos": vid}})
    return api_response(playlist, "Video added to playlist successfully")


@router.patch("/remove/{video_id}/{playlist_id}")
def remove_video(
    video_id: str,
    playlist_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    vid = objid(video_id, "video id")
    playlist = _update_owned(db, playlist_id, current_user["_id"], {"$pull": {"videos": vid}})
    return api_response(playlist, "Video removed from playlist successfully")


@router.patch("/{playlist_id}")
def update_playlist(
    playlist_id: str,
    payload: PlaylistRequest,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    changes = {"name": payload.name, "description": payload.description or ""}
    playlist = _update_owned(db, playlist_id, current_user["_id"], {"$set": changes}, "update")
    return api_response(playlist, "Playlist updated successfully")


@router.delete("/{playlist_id}")
def delete_playlist(
    playlist_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    pid = objid(playlist_id, "playlist id")
    find_owned(db["playlist"], pid, current_user["_id"], "Playlist", "delete")
    if db["playlist"].delete_one({"_id": pid}).deleted_count == 0:
        raise Internal("Failed to delete playlist")
    return api_response({}, "Playlist deleted successfully")
