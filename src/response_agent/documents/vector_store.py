"""Rebuild a remote vector store from the contents of a local directory."""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from contextlib import aclosing
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

import structlog

from response_agent.llm.errors import TransportError
from response_agent.llm.http import OpenAIRestClient

LOGGER: Final = structlog.get_logger(__name__)

UPLOAD_PURPOSE: Final = "assistants"
PAGE_LIMIT: Final = 100


def list_local_files(directory: Path) -> list[Path]:
    return sorted(path for path in directory.rglob("*") if path.is_file())


@dataclass(slots=True)
class VectorStoreSync:
    """Full resync: every remote file is removed, then every local file is uploaded.

    The store is resolved in order: the configured id (if it still exists), a
    store with the configured name, or a newly created store.
    """

    client: OpenAIRestClient
    sync_dir: str | None
    vector_store_name: str | None = None
    vector_store_id: str | None = None

    async def sync(self) -> str | None:
        if not self.sync_dir:
            return None
        directory = Path(self.sync_dir)
        if not directory.is_dir():
            LOGGER.warning("vector_store.sync_dir_missing", sync_dir=self.sync_dir)
            return None

        store_id = await self._resolve_store_id(directory)
        self.vector_store_id = store_id

        removed = 0
        async for file_id in self._iter_store_file_ids(store_id):
            await self.client.delete(f"/vector_stores/{store_id}/files/{file_id}")
            await self._delete_uploaded_file(file_id)
            removed += 1

        file_ids = [await self._upload(path) for path in list_local_files(directory)]
        if file_ids:
            await self.client.post(f"/vector_stores/{store_id}/file_batches", {"file_ids": file_ids})

        LOGGER.info("vector_store.synced", vector_store_id=store_id, removed=removed, uploaded=len(file_ids))
        return store_id

    async def _resolve_store_id(self, directory: Path) -> str:
        if self.vector_store_id and await self._store_exists(self.vector_store_id):
            return self.vector_store_id

        name = self.vector_store_name or directory.name
        found = await self.find_store_id_by_name(name)
        if found:
            return found
        return await self._create_store(name)

    async def _store_exists(self, store_id: str) -> bool:
        try:
            response = await self.client.get(f"/vector_stores/{store_id}")
        except TransportError as exc:
            LOGGER.info("vector_store.lookup_failed", vector_store_id=store_id, error=str(exc))
            return False
        return str(response.get("id", "")) == store_id

    async def find_store_id_by_name(self, name: str) -> str | None:
        async with aclosing(self._paginate("/vector_stores", {"limit": PAGE_LIMIT})) as rows:
            async for row in rows:
                if str(row.get("name") or "") == name and row.get("id"):
                    return str(row["id"])
        return None

    async def _create_store(self, name: str) -> str:
        response = await self.client.post("/vector_stores", {"name": name})
        if not response.get("id"):
            raise TransportError(None, "Vector store creation returned no id")
        LOGGER.info("vector_store.created", vector_store_id=response["id"], name=name)
        return str(response["id"])

    async def _iter_store_file_ids(self, store_id: str) -> AsyncIterator[str]:
        # Collected up front so deletions do not shift the pagination cursor.
        ids = [str(row["id"]) async for row in self._paginate(f"/vector_stores/{store_id}/files", {}) if row.get("id")]
        for file_id in ids:
            yield file_id

    async def _paginate(self, path: str, params: Mapping[str, Any]) -> AsyncIterator[Mapping[str, Any]]:
        after: str | None = None
        while True:
            query = dict(params)
            if after:
                query["after"] = after
            page = await self.client.get(path, query)
            data = page.get("data")
            if isinstance(data, list):
                for row in data:
                    if isinstance(row, Mapping):
                        yield row
            if not page.get("has_more") or not page.get("last_id"):
                return
            after = str(page["last_id"])

    async def _delete_uploaded_file(self, file_id: str) -> None:
        try:
            await self.client.delete(f"/files/{file_id}")
        except TransportError as exc:
            LOGGER.info("vector_store.file_delete_failed", file_id=file_id, error=str(exc))

    async def _upload(self, path: Path) -> str:
        response = await self.client.upload("/files", path, purpose=UPLOAD_PURPOSE)
        if not response.get("id"):
            raise TransportError(None, f"Upload failure: {path.name}")
        return str(response["id"])
