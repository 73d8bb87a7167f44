"""Result materializer — persists a winning artifact plus its sidecar metadata."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from fashionist.core.errors import PersistenceFailure
from fashionist.core.image_processing import extension_for, make_thumbnail
from fashionist.core.storage import ArtifactStore

from .contracts import GenerationRequest, ProviderArtifact
from .registry import ProviderDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MaterializedArtifact:
    reference: str
    metadata_reference: str
    thumbnail_reference: Optional[str] = None


class ResultMaterializer:
    """Writes ``<provider>_fashion_<token>.<ext>`` and ``<stem>_metadata.json``.

    Any failure to store the artifact or its metadata raises
    ``PersistenceFailure``, and files already written for that artifact are
    removed; a thumbnail failure is only logged.
    """

    def __init__(
        self,
        store: ArtifactStore,
        *,
        thumbnails_enabled: bool = True,
        download_timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.store = store
        self.thumbnails_enabled = thumbnails_enabled
        self._download_timeout = download_timeout_seconds
        self._transport = transport

    async def persist(
        self,
        artifact: ProviderArtifact,
        request: GenerationRequest,
        descriptor: ProviderDescriptor,
        *,
        enhanced_prompt: str,
        latency_ms: float,
    ) -> MaterializedArtifact:
        content = artifact.content
        media_type = artifact.media_type
        if content is None:
            content, media_type = await self._download(artifact.source_url or "", media_type)

        stem = f"{descriptor.id}_fashion_{uuid.uuid4().hex}"
        name = f"{stem}{extension_for(media_type)}"
        reference = await asyncio.to_thread(self.store.write, name, content, media_type)
        written = [name]

        thumbnail_reference = None
        if self.thumbnails_enabled:
            thumbnail_reference = await self._write_thumbnail(stem, content, media_type)
            if thumbnail_reference is not None:
                written.append(f"{stem}_thumb.webp")

        metadata = self.build_metadata(
            artifact,
            request,
            descriptor,
            enhanced_prompt=enhanced_prompt,
            latency_ms=latency_ms,
            reference=reference,
            thumbnail_reference=thumbnail_reference,
        )
        metadata_bytes = json.dumps(metadata, indent=2, ensure_ascii=False).encode("utf-8")
        try:
            metadata_reference = await asyncio.to_thread(
                self.store.write, f"{stem}_metadata.json", metadata_bytes, "application/json"
            )
        except PersistenceFailure:
            # No artifact without its sidecar.
            for leftover in written:
                await asyncio.to_thread(self.store.delete, leftover)
            raise

        logger.info("Materialized %s artifact from %s at %s", media_type, descriptor.id, reference)
        return MaterializedArtifact(
            reference=reference,
            metadata_reference=metadata_reference,
            thumbnail_reference=thumbnail_reference,
        )

    @staticmethod
    def build_metadata(
        artifact: ProviderArtifact,
        request: GenerationRequest,
        descriptor: ProviderDescriptor,
        *,
        enhanced_prompt: str,
        latency_ms: float,
        reference: str,
        thumbnail_reference: Optional[str] = None,
    ) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "original_prompt": request.prompt,
            "prompt": enhanced_prompt,
            "style": request.style.model_dump(mode="json"),
            "shape": request.shape.model_dump(mode="json"),
            "provider": descriptor.id,
            "provider_label": descriptor.label,
            "model": artifact.model,
            "cost_estimate": descriptor.cost_per_call,
            "latency_ms": round(latency_ms, 2),
            "media_type": artifact.media_type,
            "artifact": reference,
            "thumbnail": thumbnail_reference,
            "generated_at": datetime.now(timezone.utc).isoformat(),
        }
        if artifact.source_url:
            metadata["original_url"] = artifact.source_url
        if artifact.description:
            metadata["description"] = artifact.description
        if artifact.extra:
            metadata["provider_details"] = artifact.extra
        return metadata

    async def _download(self, url: str, media_type: str) -> tuple[bytes, str]:
        if not url:
            raise PersistenceFailure("Artifact has neither content nor a source URL")
        try:
            async with httpx.AsyncClient(
                timeout=self._download_timeout, transport=self._transport, follow_redirects=True
            ) as client:
                resp = await client.get(url)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise PersistenceFailure(f"Could not download artifact from {url}: {exc}") from exc
        header_type = resp.headers.get("content-type", "").split(";")[0].strip()
        return resp.content, header_type or media_type

    async def _write_thumbnail(self, stem: str, content: bytes, media_type: str) -> Optional[str]:
        thumb = await asyncio.to_thread(make_thumbnail, content, media_type)
        if thumb is None:
            return None
        try:
            return await asyncio.to_thread(self.store.write, f"{stem}_thumb.webp", thumb, "image/webp")
        except PersistenceFailure:
            logger.warning("Failed to store thumbnail for %s", stem, exc_info=True)
            return None
