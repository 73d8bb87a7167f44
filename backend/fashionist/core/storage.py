import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from fashionist.core.config import Settings, get_settings
from fashionist.core.errors import PersistenceFailure

logger = logging.getLogger(__name__)


class ArtifactStore(Protocol):
    def write(self, name: str, content: bytes, content_type: Optional[str]) -> str:
        """Store *content* under *name* and return a stable reference."""

    def delete(self, name: str) -> None:
        """Best-effort removal of *name*; never raises."""


class LocalArtifactStore:
    """Writes artifacts under a well-known directory the UI reads directly."""

    def __init__(self, root: str, public_prefix: str = "") -> None:
        self.root = Path(root)
        self.public_prefix = public_prefix.rstrip("/")

    def reference_for(self, name: str) -> str:
        path = (self.root / name).as_posix()
        if self.public_prefix:
            return f"{self.public_prefix}/{name}"
        return path

    def write(self, name: str, content: bytes, content_type: Optional[str]) -> str:
        target = self.root / name
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            # Write-then-rename so readers never see a half-written file.
            fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=".tmp_")
            with os.fdopen(fd, "wb") as fh:
                fh.write(content)
            os.replace(tmp, target)
        except OSError as exc:
            raise PersistenceFailure(f"Could not write {target.as_posix()}: {exc}") from exc
        return self.reference_for(name)

    def delete(self, name: str) -> None:
        try:
            (self.root / name).unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove %s", name, exc_info=True)


class SupabaseArtifactStore:
    """Uploads artifacts to a Supabase storage bucket."""

    def __init__(self, url: str, key: str, bucket: str) -> None:
        from supabase import create_client

        self.url = url.rstrip("/")
        self.bucket = bucket
        self._client = create_client(url, key)

    def reference_for(self, name: str) -> str:
        return f"{self.url}/storage/v1/object/public/{self.bucket}/{name}"

    def write(self, name: str, content: bytes, content_type: Optional[str]) -> str:
        options = {"content-type": content_type} if content_type else None
        try:
            result = self._client.storage.from_(self.bucket).upload(name, content, options)
        except Exception as exc:  # pragma: no cover
            raise PersistenceFailure(f"Upload to bucket {self.bucket!r} failed: {exc}") from exc

        error = None
        if isinstance(result, dict):
            error = result.get("error")
        else:
            error = getattr(result, "error", None)

        if error:
            raise PersistenceFailure(f"Upload to bucket {self.bucket!r} failed: {error}")

        return self.reference_for(name)

    def delete(self, name: str) -> None:
        try:
            self._client.storage.from_(self.bucket).remove([name])
        except Exception:  # pragma: no cover
            logger.warning("Could not remove %s from bucket %s", name, self.bucket, exc_info=True)


def get_artifact_store(settings: Optional[Settings] = None) -> ArtifactStore:
    settings = settings or get_settings()
    if settings.media_storage_backend == "supabase":
        key = settings.supabase_service_role_key or settings.supabase_key
        if not settings.supabase_url or not key:
            raise RuntimeError("Supabase storage backend selected but credentials are missing")
        logger.info("Artifacts stored in Supabase bucket %s", settings.supabase_media_bucket)
        return SupabaseArtifactStore(settings.supabase_url, key, settings.supabase_media_bucket)
    logger.info("Artifacts stored under %s", settings.media_storage_root)
    return LocalArtifactStore(settings.media_storage_root, settings.media_public_prefix)
