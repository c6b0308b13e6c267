"""Playlist management endpoints."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from tipoko.database import get_db
from tipoko.models.channel import Channel
from tipoko.models.playlist import Playlist, PlaylistVideo
from tipoko.models.user import User
from tipoko.models.video import Video
from tipoko.schemas.playlists import (
    PlaylistCreate, PlaylistUpdate, PlaylistResponse, PlaylistDetailResponse, PlaylistItem,
    PlaylistAddVideo, PlaylistReorder,
)
from tipoko.schemas.videos import VideoResponse
from tipoko.auth.dependencies import get_current_active_user, get_optional_user
from tipoko.services.videos import owns_channel, can_manage, can_view, get_viewable_video

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_playlist(db: AsyncSession, playlist_id: str) -> tuple[Playlist, Channel]:
    result = await db.execute(
        select(Playlist, Channel)
        .join(Channel, Channel.uuid == Playlist.channel_id)
        .where(Playlist.uuid == playlist_id)
    )
    row = result.first()
    if row is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Playlist not found"
        )
    return row[0], row[1]


async def _get_owned_playlist(db: AsyncSession, playlist_id: str, user: User) -> tuple[Playlist, Channel]:
    playlist, channel = await _get_playlist(db, playlist_id)
    if not owns_channel(user, channel):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to edit this playlist"
        )
    return playlist, channel


async def _entries(db: AsyncSession, playlist_id: str) -> list[PlaylistVideo]:
    result = await db.execute(
        select(PlaylistVideo).where(PlaylistVideo.playlist_id == playlist_id).order_by(PlaylistVideo.position)
    )
    return list(result.scalars().all())


@router.get("", response_model=List[PlaylistResponse])
async def list_my_playlists(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Playlists on all of the caller's channels, most recently updated first."""
    result = await db.execute(
        select(Playlist)
        .join(Channel, Channel.uuid == Playlist.channel_id)
        .where(Channel.user_id == current_user.uuid)
        .order_by(Playlist.updated_at.desc())
    )
    return result.scalars().all()


@router.post("", response_model=PlaylistResponse, status_code=status.HTTP_201_CREATED)
async def create_playlist(
    playlist_data: PlaylistCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    if playlist_data.channel_id:
        channel = await db.get(Channel, playlist_data.channel_id)
    else:
        result = await db.execute(
            select(Channel).where(Channel.user_id == current_user.uuid).order_by(Channel.created_at).limit(1)
        )
        channel = result.scalar_one_or_none()

    if channel is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Channel not found"
        )
    if not owns_channel(current_user, channel):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to create playlists on this channel"
        )

    playlist = Playlist(
        channel_id=channel.uuid,
        title=playlist_data.title,
        description=playlist_data.description,
        visibility=playlist_data.visibility,
    )
    db.add(playlist)
    await db.commit()
    await db.refresh(playlist)
    return playlist


@router.get("/{playlist_id}", response_model=PlaylistDetailResponse)
async def get_playlist(
    playlist_id: str,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Playlist with its videos.

    Private playlists are only shown to their owner; videos the caller may
    not watch are left out.
    """
    playlist, channel = await _get_playlist(db, playlist_id)
    is_owner = owns_channel(current_user, channel)
    if playlist.visibility == "private" and not is_owner:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This playlist is private"
        )

    result = await db.execute(
        select(PlaylistVideo, Video, Channel)
        .join(Video, Video.uuid == PlaylistVideo.video_id)
        .join(Channel, Channel.uuid == Video.channel_id)
        .where(PlaylistVideo.playlist_id == playlist.uuid)
        .order_by(PlaylistVideo.position)
    )
    items = [
        PlaylistItem(position=entry.position, added_at=entry.added_at, video=VideoResponse.model_validate(video))
        for entry, video, video_channel in result.all()
        if can_view(video, video_channel, current_user)
    ]

    return PlaylistDetailResponse(
        **PlaylistResponse.model_validate(playlist).model_dump(),
        channel_name=channel.name,
        channel_handle=channel.handle,
        is_owner=is_owner,
        videos=items
    )


@router.put("/{playlist_id}", response_model=PlaylistResponse)
async def update_playlist(
    playlist_id: str,
    playlist_update: PlaylistUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    playlist, _ = await _get_owned_playlist(db, playlist_id, current_user)
    for field, value in playlist_update.model_dump(exclude_unset=True).items():
        setattr(playlist, field, value)
    await db.commit()
    await db.refresh(playlist)
    return playlist


@router.delete("/{playlist_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_playlist(
    playlist_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Delete a playlist (owner or admin). The videos themselves are untouched."""
    playlist, channel = await _get_playlist(db, playlist_id)
    if not can_manage(current_user, channel):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to delete this playlist"
        )
    for entry in await _entries(db, playlist.uuid):
        await db.delete(entry)
    await db.delete(playlist)
    await db.commit()
    logger.info(f"Playlist {playlist_id} deleted by {current_user.uuid}")


@router.post("/{playlist_id}/videos", response_model=PlaylistResponse, status_code=status.HTTP_201_CREATED)
async def add_video(
    playlist_id: str,
    body: PlaylistAddVideo,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Append a video to the end of a playlist.

    A video can appear once per playlist. The first video added with a
    thumbnail becomes the playlist thumbnail when none is set.
    """
    playlist, _ = await _get_owned_playlist(db, playlist_id, current_user)
    video, _ = await get_viewable_video(db, body.video_id, current_user)

    if await db.get(PlaylistVideo, (playlist.uuid, video.uuid)) is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Video already in playlist"
        )

    result = await db.execute(
        select(func.coalesce(func.max(PlaylistVideo.position), 0)).where(PlaylistVideo.playlist_id == playlist.uuid)
    )
    position = int(result.scalar() or 0) + 1

    db.add(PlaylistVideo(playlist_id=playlist.uuid, video_id=video.uuid, position=position))
    playlist.video_count = (playlist.video_count or 0) + 1
    playlist.total_duration = (playlist.total_duration or 0) + (video.duration or 0)
    if not playlist.thumbnail_url and video.thumbnail_url:
        playlist.thumbnail_url = video.thumbnail_url

    await db.commit()
    await db.refresh(playlist)
    return playlist


@router.delete("/{playlist_id}/videos/{video_id}", response_model=PlaylistResponse)
async def remove_video(
    playlist_id: str,
    video_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Remove a video; later videos move up so positions stay contiguous."""
    playlist, _ = await _get_owned_playlist(db, playlist_id, current_user)

    entry = await db.get(PlaylistVideo, (playlist.uuid, video_id))
    if entry is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Video not in playlist"
        )

    video = await db.get(Video, video_id)
    await db.delete(entry)
    await db.flush()
    for position, remaining in enumerate(await _entries(db, playlist.uuid), start=1):
        remaining.position = position

    playlist.video_count = max((playlist.video_count or 0) - 1, 0)
    if video is not None:
        playlist.total_duration = max((playlist.total_duration or 0) - (video.duration or 0), 0)

    await db.commit()
    await db.refresh(playlist)
    return playlist


@router.put("/{playlist_id}/reorder", response_model=PlaylistResponse)
async def reorder_playlist(
    playlist_id: str,
    body: PlaylistReorder,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Set the playlist order; the ids must be exactly the playlist's videos."""
    playlist, _ = await _get_owned_playlist(db, playlist_id, current_user)
    entries = {entry.video_id: entry for entry in await _entries(db, playlist.uuid)}

    if len(body.video_ids) != len(set(body.video_ids)) or set(body.video_ids) != set(entries):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="video_ids must list every video of the playlist exactly once"
        )

    for position, video_id in enumerate(body.video_ids, start=1):
        entries[video_id].position = position

    await db.commit()
    await db.refresh(playlist)
    return playlist
