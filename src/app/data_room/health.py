"""Data room completeness metrics.

Health measures how many folders hold at least one document. Folders
marked not applicable are left out entirely. When a data room has required
folders only those count; otherwise every remaining folder does.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

from src.app.data_room.schemas import DataRoomHealth, DocumentRead, FolderRead


def percent(numerator: int, denominator: int) -> int:
    """Rounded percentage (half up), 0 when the denominator is 0."""
    if denominator <= 0:
        return 0
    return math.floor(100 * numerator / denominator + 0.5)


def compute_health(
    folders: Iterable[FolderRead], documents: Iterable[DocumentRead]
) -> DataRoomHealth:
    documents = list(documents)
    active = [f for f in folders if not f.is_not_applicable]
    required = [f for f in active if f.is_required]
    filled_ids = {d.folder_id for d in documents if d.folder_id}

    with_docs = [f for f in active if f.id in filled_ids]
    required_with_docs = [f for f in required if f.id in filled_ids]

    if required:
        numerator, denominator = len(required_with_docs), len(required)
    else:
        numerator, denominator = len(with_docs), len(active)

    health = percent(numerator, denominator)
    return DataRoomHealth(
        total_folders=len(active),
        required_folders=len(required),
        folders_with_documents=len(with_docs),
        required_folders_with_documents=len(required_with_docs),
        total_documents=len(documents),
        health_percentage=health,
        is_complete=health == 100,
        missing_required_folders=[f.name for f in required if f.id not in filled_ids],
    )


def approval_completion(
    folders: Iterable[FolderRead], documents: Iterable[DocumentRead]
) -> int:
    """Share of all folders holding at least one document (approval bar)."""
    folders = list(folders)
    filled_ids = {d.folder_id for d in documents if d.folder_id}
    return percent(sum(1 for f in folders if f.id in filled_ids), len(folders))
