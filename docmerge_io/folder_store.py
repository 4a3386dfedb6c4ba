"""Local directories as merge destinations."""

# Module responsibilities:
# - Resolve destination references to existing directories.
# - Store PDF blobs under sanitized, collision-free names with a generated id.
# - Stamp the output filename into the PDF title metadata.

from __future__ import annotations

import os
import re
import stat
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from docmerge.core.errors import InvalidDestinationReference, StorageError
from docmerge.services.merge.interfaces import FileStore, Folder, StoredFile

from .pdf_export import set_metadata
from .utils.log import get_logger

logger = get_logger("folder_store")

PDF_SUFFIX = ".pdf"
_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_PUBLIC_MODE = stat.S_IRUSR | stat.S_IWUSR | stat.S_IRGRP | stat.S_IROTH


def sanitize_filename(name: str) -> str:
    """Replace filesystem-unsafe characters and trim."""

    cleaned = _UNSAFE_CHARS.sub("_", name).strip().rstrip(".")
    return cleaned or "document"


@dataclass(slots=True)
class LocalStoredFile(StoredFile):
    id: str
    url: str
    path: Path

    def set_public_viewable(self) -> None:
        try:
            os.chmod(self.path, _PUBLIC_MODE)
        except OSError as exc:
            raise StorageError(f"Failed to change permissions of {self.path}: {exc}") from exc


class LocalFolder(Folder):
    def __init__(self, path: Path, *, stamp_title: bool = True) -> None:
        self.path = path
        self.stamp_title = stamp_title

    def _free_path(self, stem: str) -> Path:
        candidate = self.path / f"{stem}{PDF_SUFFIX}"
        counter = 1
        while candidate.exists():
            counter += 1
            candidate = self.path / f"{stem} ({counter}){PDF_SUFFIX}"
        return candidate

    def store(self, blob: bytes, filename: str) -> LocalStoredFile:
        if self.stamp_title:
            blob = set_metadata(blob, {"Title": filename})
        target = self._free_path(sanitize_filename(filename))
        try:
            target.write_bytes(blob)
        except OSError as exc:
            raise StorageError(f"Failed to write {target}: {exc}") from exc
        file_id = uuid.uuid4().hex
        logger.info("Stored %s as %s", target.name, file_id)
        return LocalStoredFile(id=file_id, url=target.resolve().as_uri(), path=target)


class LocalFolderStore(FileStore):
    """Destination references are directory paths, relative ones under ``base_dir``."""

    def __init__(self, base_dir: Optional[Path] = None, *, create: bool = False) -> None:
        self.base_dir = Path(base_dir) if base_dir else None
        self.create = create

    def resolve_folder(self, folder_ref: str) -> LocalFolder:
        path = Path(folder_ref).expanduser()
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        if self.create:
            path.mkdir(parents=True, exist_ok=True)
        if not path.is_dir():
            raise InvalidDestinationReference(f"Destination folder not found: {folder_ref}")
        return LocalFolder(path)
