"""Folder path resolution: the per-organization log tree.

Paths look like ``/transactions/stripe/refunds``.  Each segment is a
``Folder`` row keyed by ``(organization_id, parent_folder_id, name)``.
Folders are created lazily the first time a log is sent to a path, and a
folder may hold logs or subfolders but never both.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from logtree_cloud.config import settings
from logtree_cloud.database import dialect_insert
from logtree_cloud.errors import AuthError, ConflictError, NotFoundError, ValidationError
from logtree_cloud.models.activity import FavoriteFolder, FolderPreference, LastCheckedFolder
from logtree_cloud.models.folder import Folder
from logtree_cloud.models.log import Log
from logtree_cloud.models.rule import Rule
from logtree_cloud.models.user import User

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 400


def validate_folder_path(folder_path: str) -> None:
    """Raise ``ValidationError`` unless *folder_path* is a usable folder path."""
    if not folder_path or folder_path[0] != "/":
        raise ValidationError("Your folderPath must begin with a /")
    if any(ch.isspace() for ch in folder_path):
        raise ValidationError("Your folderPath cannot include any spaces.")
    if len(folder_path) <= 1:
        raise ValidationError("Please provide a valid folderPath string (e.g. /transactions).")
    if len(folder_path) > settings.max_folder_path_length:
        raise ValidationError(
            f"Your folderPath cannot be longer than {settings.max_folder_path_length} characters."
        )


def is_same_or_nested_path(full_path: str, ancestor_path: str) -> bool:
    return full_path == ancestor_path or full_path.startswith(ancestor_path.rstrip("/") + "/")


def _parent_clause(parent_folder_id: uuid.UUID | None):
    if parent_folder_id is None:
        return Folder.parent_folder_id.is_(None)
    return Folder.parent_folder_id == parent_folder_id


async def _find_folder_id(
    db: AsyncSession,
    organization_id: uuid.UUID,
    parent_folder_id: uuid.UUID | None,
    name: str,
) -> uuid.UUID | None:
    result = await db.execute(
        select(Folder.id).where(
            Folder.organization_id == organization_id,
            _parent_clause(parent_folder_id),
            Folder.name == name,
        )
    )
    return result.scalar_one_or_none()


async def folder_has_logs(db: AsyncSession, folder_id: uuid.UUID) -> bool:
    result = await db.execute(select(Log.id).where(Log.folder_id == folder_id).limit(1))
    return result.scalar_one_or_none() is not None


async def folder_has_subfolders(db: AsyncSession, folder_id: uuid.UUID) -> bool:
    result = await db.execute(
        select(Folder.id).where(Folder.parent_folder_id == folder_id).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def find_or_create_folder_id(
    db: AsyncSession,
    organization_id: uuid.UUID,
    parent_folder_id: uuid.UUID | None,
    name: str,
    full_path: str,
) -> uuid.UUID:
    """Return the id of the folder for this segment, creating it if missing.

    Concurrent writers race on the unique constraint: the insert runs in a
    SAVEPOINT and the loser re-reads the row the winner committed.
    """
    existing_id = await _find_folder_id(db, organization_id, parent_folder_id, name)
    if existing_id is not None:
        return existing_id

    try:
        async with db.begin_nested():
            folder = Folder(
                organization_id=organization_id,
                parent_folder_id=parent_folder_id,
                name=name,
                full_path=full_path,
            )
            db.add(folder)
            await db.flush()
        return folder.id
    except IntegrityError:
        winner_id = await _find_folder_id(db, organization_id, parent_folder_id, name)
        if winner_id is None:
            raise
        logger.debug("Folder %s created concurrently, using existing row", full_path)
        return winner_id


async def get_or_create_leaf_folder_id(
    db: AsyncSession,
    organization_id: uuid.UUID,
    folder_path: str,
) -> uuid.UUID:
    """Walk *folder_path* from the root, creating missing folders, and return the leaf id.

    Raises ``ConflictError`` when the walk would place a subfolder inside a
    folder that already has logs, or when the leaf itself already has
    subfolders.
    """
    segments = [segment for segment in folder_path.split("/") if segment]
    if not segments:
        raise ValidationError("Something went wrong when parsing the folder path.")

    last_folder_id: uuid.UUID | None = None
    path_so_far = ""
    for index, name in enumerate(segments):
        path_so_far += f"/{name}"
        last_folder_id = await find_or_create_folder_id(
            db, organization_id, last_folder_id, name, path_so_far
        )

        is_leaf = index == len(segments) - 1
        if not is_leaf and await folder_has_logs(db, last_folder_id):
            raise ConflictError(
                "You cannot create subfolders inside of a folder that already has at least 1 log."
            )

    assert last_folder_id is not None
    if await folder_has_subfolders(db, last_folder_id):
        raise ConflictError("You cannot send logs to a folder that already has subfolders.")

    return last_folder_id


async def get_folder_by_path(
    db: AsyncSession,
    organization_id: uuid.UUID,
    full_path: str,
) -> Folder:
    result = await db.execute(
        select(Folder).where(
            Folder.organization_id == organization_id,
            Folder.full_path == full_path,
        )
    )
    folder = result.scalar_one_or_none()
    if folder is None:
        raise NotFoundError(f"No folder exists at {full_path}.")
    return folder


# ---------------------------------------------------------------------------
# Folder tree
# ---------------------------------------------------------------------------

def _has_unread_logs(folder: Folder, last_checked: dict[str, datetime]) -> bool:
    checked_at = last_checked.get(folder.full_path)
    if checked_at is None:
        return True
    return folder.date_of_most_recent_log is not None and folder.date_of_most_recent_log > checked_at


def build_folder_tree(
    folders: list[Folder],
    parent_folder_id: uuid.UUID | None,
    last_checked: dict[str, datetime],
    muted_paths: frozenset[str] = frozenset(),
) -> list[dict[str, Any]]:
    tree: list[dict[str, Any]] = []
    for folder in folders:
        if folder.parent_folder_id != parent_folder_id:
            continue
        tree.append({
            "id": str(folder.id),
            "name": folder.name,
            "full_path": folder.full_path,
            "description": folder.description,
            "has_unread_logs": _has_unread_logs(folder, last_checked),
            "is_muted": folder.full_path in muted_paths,
            "children": build_folder_tree(folders, folder.id, last_checked, muted_paths),
        })
    return tree


async def get_folder_tree(
    db: AsyncSession,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
) -> list[dict[str, Any]]:
    """Return the organization's folders as a nested tree for *user_id*."""
    folders_result = await db.execute(
        select(Folder)
        .where(Folder.organization_id == organization_id)
        .order_by(Folder.created_at)
    )
    folders = list(folders_result.scalars().all())

    checked_result = await db.execute(
        select(LastCheckedFolder.full_path, func.max(LastCheckedFolder.created_at))
        .where(LastCheckedFolder.user_id == user_id)
        .group_by(LastCheckedFolder.full_path)
    )
    last_checked = {path: checked_at for path, checked_at in checked_result.all()}

    muted_result = await db.execute(
        select(FolderPreference.full_path).where(
            FolderPreference.user_id == user_id,
            FolderPreference.is_muted.is_(True),
        )
    )
    muted_paths = frozenset(muted_result.scalars().all())

    return build_folder_tree(folders, None, last_checked, muted_paths)


async def update_folder(
    db: AsyncSession,
    organization_id: uuid.UUID,
    folder_id: uuid.UUID,
    description: str | None = None,
) -> Folder:
    if description is not None and len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"A folder description cannot be longer than {MAX_DESCRIPTION_LENGTH} characters."
        )

    result = await db.execute(
        select(Folder).where(Folder.id == folder_id, Folder.organization_id == organization_id)
    )
    folder = result.scalar_one_or_none()
    if folder is None:
        raise NotFoundError("Cannot update a folder that doesn't exist.")

    folder.description = description
    await db.flush()
    return folder


async def delete_folder_and_everything_inside(
    db: AsyncSession,
    organization_id: uuid.UUID,
    folder_id: uuid.UUID,
) -> int:
    """Delete a folder, its descendants, and their logs and rules.

    Returns the number of folders removed.
    """
    result = await db.execute(
        select(Folder).where(Folder.id == folder_id, Folder.organization_id == organization_id)
    )
    folder = result.scalar_one_or_none()
    if folder is None:
        raise AuthError("You cannot delete this folder.")

    ids_result = await db.execute(
        select(Folder.id).where(
            Folder.organization_id == organization_id,
            (Folder.full_path == folder.full_path)
            | Folder.full_path.startswith(folder.full_path + "/", autoescape=True),
        )
    )
    folder_ids = list(ids_result.scalars().all())

    await db.execute(delete(Rule).where(Rule.folder_id.in_(folder_ids)))
    await db.execute(delete(Log).where(Log.folder_id.in_(folder_ids)))
    await db.execute(delete(Folder).where(Folder.id.in_(folder_ids)))
    logger.info(
        "Deleted %d folder(s) under %s (org=%s)", len(folder_ids), folder.full_path, organization_id
    )
    return len(folder_ids)


# ---------------------------------------------------------------------------
# Favorites and the last-checked ledger
# ---------------------------------------------------------------------------

async def favorite_folder(
    db: AsyncSession,
    user_id: uuid.UUID,
    full_path: str,
    is_removed: bool = False,
) -> FavoriteFolder | None:
    validate_folder_path(full_path)

    result = await db.execute(
        select(FavoriteFolder).where(
            FavoriteFolder.user_id == user_id,
            FavoriteFolder.full_path == full_path,
        )
    )
    existing = result.scalar_one_or_none()

    if is_removed:
        if existing is None:
            raise NotFoundError("Cannot unfavorite a folder that is not currently favorited.")
        await db.delete(existing)
        await db.flush()
        return None

    if existing is not None:
        raise ConflictError("Cannot favorite a folder that is already favorited.")

    favorite = FavoriteFolder(user_id=user_id, full_path=full_path)
    db.add(favorite)
    await db.flush()
    return favorite


async def get_favorite_folder_paths(db: AsyncSession, user_id: uuid.UUID) -> list[str]:
    result = await db.execute(
        select(FavoriteFolder.full_path)
        .where(FavoriteFolder.user_id == user_id)
        .order_by(FavoriteFolder.created_at)
    )
    return list(result.scalars().all())


async def get_favorited_folder_ids(db: AsyncSession, user: User) -> list[uuid.UUID]:
    """Return ids of the user's org folders that are favorited or nested under a favorite."""
    favorite_paths = await get_favorite_folder_paths(db, user.id)
    if not favorite_paths:
        return []

    result = await db.execute(
        select(Folder.id, Folder.full_path).where(Folder.organization_id == user.organization_id)
    )
    return [
        folder_id
        for folder_id, full_path in result.all()
        if any(is_same_or_nested_path(full_path, favorite) for favorite in favorite_paths)
    ]


async def record_user_checking_folder(
    db: AsyncSession,
    user_id: uuid.UUID,
    folder_id: uuid.UUID | None = None,
    is_favorites: bool = False,
    now: datetime | None = None,
) -> int:
    """Append last-checked rows for a folder visit. Returns the number of rows written.

    Checking the favorites view records the empty path plus one row per
    favorited folder.
    """
    now = now or datetime.now(timezone.utc)
    paths: list[str] = []

    if folder_id is not None:
        result = await db.execute(select(Folder.full_path).where(Folder.id == folder_id))
        full_path = result.scalar_one_or_none()
        if full_path is None:
            return 0
        paths.append(full_path)
    elif is_favorites:
        paths.append("")

    if is_favorites:
        paths.extend(await get_favorite_folder_paths(db, user_id))

    for path in paths:
        db.add(LastCheckedFolder(user_id=user_id, full_path=path, created_at=now))
    await db.flush()
    return len(paths)


async def get_most_checked_folder_paths(
    db: AsyncSession,
    user_id: uuid.UUID,
    since: datetime,
    limit: int,
) -> list[str]:
    check_count = func.count(LastCheckedFolder.id)
    result = await db.execute(
        select(LastCheckedFolder.full_path, check_count)
        .where(
            LastCheckedFolder.user_id == user_id,
            LastCheckedFolder.created_at >= since,
            LastCheckedFolder.full_path != "",
        )
        .group_by(LastCheckedFolder.full_path)
        .order_by(check_count.desc(), LastCheckedFolder.full_path)
        .limit(limit)
    )
    return [full_path for full_path, _ in result.all()]


async def set_folder_preference(
    db: AsyncSession,
    user_id: uuid.UUID,
    full_path: str,
    is_muted: bool = False,
    now: datetime | None = None,
) -> FolderPreference:
    """Create or update the user's preference row for *full_path*."""
    validate_folder_path(full_path)
    now = now or datetime.now(timezone.utc)

    insert = dialect_insert(db)
    stmt = insert(FolderPreference).values(
        id=uuid.uuid4(),
        user_id=user_id,
        full_path=full_path,
        is_muted=is_muted,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[FolderPreference.user_id, FolderPreference.full_path],
        set_={"is_muted": is_muted, "updated_at": now},
    )
    await db.execute(stmt)

    result = await db.execute(
        select(FolderPreference)
        .where(FolderPreference.user_id == user_id, FolderPreference.full_path == full_path)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()
