"""Typed platform settings stored in the platform_settings table."""
import json
import logging
from typing import Any, Optional

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tipoko.models.platform_setting import PlatformSetting, SETTING_TYPES

logger = logging.getLogger(__name__)

# key -> (default value, type, description, public)
DEFAULT_SETTINGS: dict[str, tuple[Any, str, str, bool]] = {
    "platform_name": ("Tipoko", "string", "Platform name shown across the site", True),
    "platform_description": ("Video sharing platform", "string", "Short platform description", True),
    "maintenance_mode": (False, "boolean", "Block access to the site for maintenance", True),
    "registration_enabled": (True, "boolean", "Allow new accounts", True),
    "ads_enabled": (True, "boolean", "Serve ads on the site", True),
    "comments_enabled": (True, "boolean", "Allow comments on videos", True),
    "email_verification_required": (False, "boolean", "Require email verification", False),
    "max_video_size": (2147483648, "number", "Maximum video file size in bytes", True),
    "default_storage_limit": (5368709120, "number", "Storage quota for new users in bytes", False),
    "video_quality_options": ("360,480,720,1080", "string", "Available video qualities", True),
}


def parse_value(raw: Optional[str], setting_type: str) -> Any:
    """Convert a stored text value to its typed Python value."""
    if raw is None:
        return None
    if setting_type == "boolean":
        return raw.strip().lower() in ("true", "1", "yes", "on")
    if setting_type == "number":
        number = float(raw)
        return int(number) if number.is_integer() else number
    if setting_type == "json":
        return json.loads(raw)
    return raw


def serialize_value(value: Any, setting_type: str) -> str:
    """Convert a typed value to its stored text form."""
    if setting_type == "boolean":
        if isinstance(value, str):
            return "true" if value.strip().lower() in ("true", "1", "yes", "on") else "false"
        return "true" if value else "false"
    if setting_type == "number":
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid number value: {value!r}"
            )
        return str(int(number)) if number.is_integer() else str(number)
    if setting_type == "json":
        return json.dumps(value)
    return str(value)


def infer_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, (dict, list)):
        return "json"
    return "string"


async def seed_default_settings(db: AsyncSession) -> int:
    """Insert missing default settings. Existing values are left untouched."""
    result = await db.execute(select(PlatformSetting.key))
    existing = set(result.scalars().all())
    created = 0
    for key, (value, setting_type, description, is_public) in DEFAULT_SETTINGS.items():
        if key in existing:
            continue
        db.add(PlatformSetting(
            key=key,
            value=serialize_value(value, setting_type),
            setting_type=setting_type,
            description=description,
            is_public=is_public,
        ))
        created += 1
    if created:
        await db.commit()
        logger.info(f"Seeded {created} default platform settings")
    return created


async def get_setting(db: AsyncSession, key: str, default: Any = None) -> Any:
    """Return the typed value of a setting, falling back to the built-in default."""
    result = await db.execute(select(PlatformSetting).where(PlatformSetting.key == key))
    setting = result.scalar_one_or_none()
    if setting is None:
        if default is not None:
            return default
        if key in DEFAULT_SETTINGS:
            return DEFAULT_SETTINGS[key][0]
        return None
    return parse_value(setting.value, setting.setting_type)


async def get_all_settings(db: AsyncSession, public_only: bool = False) -> dict[str, Any]:
    query = select(PlatformSetting).order_by(PlatformSetting.key)
    if public_only:
        query = query.where(PlatformSetting.is_public.is_(True))
    result = await db.execute(query)
    return {s.key: parse_value(s.value, s.setting_type) for s in result.scalars().all()}


async def list_settings(db: AsyncSession) -> list[PlatformSetting]:
    result = await db.execute(select(PlatformSetting).order_by(PlatformSetting.key))
    return list(result.scalars().all())


async def set_setting(
    db: AsyncSession,
    key: str,
    value: Any,
    setting_type: Optional[str] = None,
    description: Optional[str] = None,
    updated_by: Optional[str] = None,
) -> PlatformSetting:
    """
    Create or update a setting.

    The type of an existing setting is kept unless a new one is given;
    unknown keys take the given type or one inferred from the value.
    """
    if setting_type is not None and setting_type not in SETTING_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid setting type: {setting_type}"
        )

    result = await db.execute(select(PlatformSetting).where(PlatformSetting.key == key))
    setting = result.scalar_one_or_none()

    if setting is None:
        default = DEFAULT_SETTINGS.get(key)
        resolved_type = setting_type or (default[1] if default else infer_type(value))
        setting = PlatformSetting(
            key=key,
            setting_type=resolved_type,
            description=description or (default[2] if default else None),
            is_public=default[3] if default else False,
        )
        db.add(setting)
    elif setting_type is not None:
        setting.setting_type = setting_type

    setting.value = serialize_value(value, setting.setting_type)
    if description is not None:
        setting.description = description
    setting.updated_by = updated_by

    await db.flush()
    return setting


async def is_maintenance_mode(db: AsyncSession) -> bool:
    return bool(await get_setting(db, "maintenance_mode", False))
