"""Incremental vault indexing pipeline and similarity search facade.

One run of ``update_vault_index``:
  1. resolve the file set (full rebuild, or new/updated/removed by mtime)
  2. chunk each file (per-file failures collected, run continues)
  3. embed chunks in batches of 100, each request retried with backoff
  4. insert each batch's survivors and report per-folder progress
  5. save the snapshot, once, however the run ends
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

from vaultindex.db.models import (
    EmbeddingChunk,
    EmbeddingDbStats,
    PendingChunk,
    SearchScope,
    SimilarityResult,
    VectorMetadata,
)
from vaultindex.db.repository import VectorRepository
from vaultindex.db.vectors import validate_vector
from vaultindex.embedding.client import EmbeddingModelClient
from vaultindex.exceptions import (
    BatchEmbeddingError,
    EmbeddingProviderConfigError,
    IndexingCancelledError,
    IndexingError,
)
from vaultindex.indexing.progress import FolderProgressTracker, IndexProgress, folder_of
from vaultindex.indexing.retry import BackoffConfig, is_rate_limit_error, retry_with_backoff
from vaultindex.indexing.vault import Vault, VaultFile, filter_files
from vaultindex.ingest.base import BaseChunker
from vaultindex.ingest.markdown import MarkdownChunker
from vaultindex.scheduler import Scheduler, YieldController, default_scheduler

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[IndexProgress], None]

_CHUNKING_YIELD_EVERY = 10
_CLASSIFY_YIELD_EVERY = 50


@dataclass
class IndexOptions:
    chunk_size: int = 1000
    exclude_patterns: list[str] = field(default_factory=list)
    include_patterns: list[str] = field(default_factory=list)
    reindex_all: bool = False
    chunk_overlap: float = 0.10
    batch_size: int = 100


@dataclass
class FileFailure:
    path: str
    error: str


@dataclass
class ChunkFailure:
    path: str
    metadata: VectorMetadata
    error: str
    exception: Exception | None = field(default=None, repr=False, compare=False)


@dataclass
class IndexResult:
    """Outcome of one indexing run.

    Attributes:
        skipped: True when every pending file failed but an older index for
            the model was kept.
    """

    new_files_count: int = 0
    updated_files_count: int = 0
    removed_files_count: int = 0
    indexed_files_count: int = 0
    inserted_chunks: int = 0
    failed_files: list[FileFailure] = field(default_factory=list)
    failed_chunks: list[ChunkFailure] = field(default_factory=list)
    skipped: bool = False


class VectorManager:
    """Keeps the embeddings table in sync with the vault.

    Args:
        vault: Document host (enumerate, read, exists).
        repository: The repository bound to the engine connection.
        scheduler: Yield target for cooperative scheduling.
        save_callback: Flushes the engine to its snapshot.
        vacuum_callback: Reclaims space after large deletes.
        backoff: Retry policy for embedding requests.
        sleep: Awaitable delay used between retries.
        chunker_factory: Builds the chunker from (chunk_size, overlap).
    """

    def __init__(
        self,
        vault: Vault,
        repository: VectorRepository,
        *,
        scheduler: Scheduler | None = None,
        save_callback: Callable[[], Awaitable[None]] | None = None,
        vacuum_callback: Callable[[], Awaitable[None]] | None = None,
        backoff: BackoffConfig | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        chunker_factory: Callable[..., BaseChunker] = MarkdownChunker,
    ) -> None:
        self._vault = vault
        self._repository = repository
        self._scheduler = scheduler or default_scheduler
        self._save_callback = save_callback
        self._vacuum_callback = vacuum_callback
        self._backoff = backoff or BackoffConfig()
        self._sleep = sleep
        self._chunker_factory = chunker_factory

    @property
    def repository(self) -> VectorRepository:
        return self._repository

    async def _request_save(self) -> None:
        if self._save_callback is None:
            logger.warning("No save callback set; vector index changes are not persisted")
            return
        await self._save_callback()

    async def _request_vacuum(self) -> None:
        if self._vacuum_callback is not None:
            await self._vacuum_callback()

    # ------------------------------------------------------------------
    # Query path
    # ------------------------------------------------------------------

    async def perform_similarity_search(
        self,
        query_vector: Sequence[float],
        embedding_model: EmbeddingModelClient,
        *,
        min_similarity: float,
        limit: int,
        scope: SearchScope | None = None,
    ) -> list[SimilarityResult]:
        return self._repository.perform_similarity_search(
            query_vector,
            embedding_model.id,
            min_similarity=min_similarity,
            limit=limit,
            scope=scope,
        )

    async def get_embedding_stats(self) -> list[EmbeddingDbStats]:
        return self._repository.get_embedding_stats()

    async def clear_all_vectors(self, embedding_model: EmbeddingModelClient) -> int:
        deleted = self._repository.clear_all_vectors(embedding_model.id)
        await self._request_vacuum()
        await self._request_save()
        return deleted

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    async def update_vault_index(
        self,
        embedding_model: EmbeddingModelClient,
        options: IndexOptions,
        update_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> IndexResult:
        """Bring the index for *embedding_model* up to date with the vault.

        Callers must not run two updates concurrently against one manager.

        Returns:
            IndexResult with counts and collected per-file / per-chunk failures.

        Raises:
            EmbeddingProviderConfigError: Credentials or endpoint missing/invalid.
            BatchEmbeddingError: Every chunk of one batch failed.
            IndexingCancelledError: *cancel_event* was set mid-run.
            IndexingError: Every file failed and no previous index exists, or
                a batch could not be stored.
        """
        result = IndexResult()
        try:
            await self._run(embedding_model, options, update_progress, cancel_event, result)
        finally:
            await self._request_save()
        return result

    async def _run(
        self,
        embedding_model: EmbeddingModelClient,
        options: IndexOptions,
        update_progress: ProgressCallback | None,
        cancel_event: asyncio.Event | None,
        result: IndexResult,
    ) -> None:
        model_id = embedding_model.id

        if options.reindex_all:
            files_to_index = self._get_filtered_markdown_files(
                options.exclude_patterns, options.include_patterns
            )
            self._repository.clear_all_vectors(model_id)
            result.new_files_count = len(files_to_index)
        else:
            result.removed_files_count = await self._delete_vectors_for_deleted_files(model_id)
            files_to_index, result.new_files_count, result.updated_files_count = (
                await self._get_files_to_index_with_stats(
                    model_id, options.exclude_patterns, options.include_patterns
                )
            )
            if files_to_index:
                self._repository.delete_vectors_for_multiple_files(
                    [f.path for f in files_to_index], model_id
                )

        if not files_to_index:
            logger.info("Vector index for %s is up to date", model_id)
            return

        tracker = FolderProgressTracker([f.path for f in files_to_index])
        total_files = len(files_to_index)

        def report(**kwargs: object) -> None:
            if update_progress is None:
                return
            update_progress(
                IndexProgress(
                    total_files=total_files,
                    folder_progress=tracker.snapshot(),
                    new_files_count=result.new_files_count,
                    updated_files_count=result.updated_files_count,
                    removed_files_count=result.removed_files_count,
                    **kwargs,
                )
            )

        # ---- Chunk ----
        chunker = self._chunker_factory(
            chunk_size=options.chunk_size, overlap=options.chunk_overlap
        )
        pending: list[PendingChunk] = []
        maybe_yield = YieldController(self._scheduler, every=_CHUNKING_YIELD_EVERY)

        for file in files_to_index:
            await maybe_yield.maybe_yield()
            _check_cancelled(cancel_event, result)

            current_folder = folder_of(file.path)
            report(
                completed_chunks=0,
                total_chunks=0,
                completed_files=result.indexed_files_count,
                current_file=file.path,
                current_folder=current_folder,
            )

            try:
                file_chunks = await self._chunk_file(file, chunker)
            except Exception as exc:
                result.failed_files.append(FileFailure(path=file.path, error=_describe(exc)))
                continue

            pending.extend(file_chunks)
            tracker.file_chunked(file.path, len(file_chunks))
            result.indexed_files_count += 1

        if result.failed_files:
            logger.error(
                "Failed to process %d file(s):\n\n%s",
                len(result.failed_files),
                "\n\n".join(f"File: {f.path}\nError: {f.error}" for f in result.failed_files),
            )

        if not pending:
            if not result.failed_files:
                # Selected files were empty after sanitising: nothing to embed.
                return
            if self._repository.has_vectors_for_model(model_id):
                logger.warning(
                    "Vector indexing skipped because all pending files failed. "
                    "Using existing embeddings."
                )
                result.skipped = True
                return
            raise IndexingError("All files failed to process. Stopping indexing process.")

        # ---- Embed + store ----
        total_chunks = len(pending)
        completed_chunks = 0
        report(
            completed_chunks=0,
            total_chunks=total_chunks,
            completed_files=result.indexed_files_count,
        )

        def on_embedded() -> None:
            nonlocal completed_chunks
            completed_chunks += 1
            report(
                completed_chunks=completed_chunks,
                total_chunks=total_chunks,
                completed_files=result.indexed_files_count,
            )

        def on_rate_limited() -> None:
            report(
                completed_chunks=completed_chunks,
                total_chunks=total_chunks,
                completed_files=result.indexed_files_count,
                waiting_for_rate_limit=True,
            )

        try:
            for start in range(0, total_chunks, max(1, options.batch_size)):
                _check_cancelled(cancel_event, result)
                await self._scheduler.yield_now()

                batch = pending[start : start + max(1, options.batch_size)]
                outcomes = await asyncio.gather(
                    *(
                        self._embed_chunk(chunk, embedding_model, on_embedded, on_rate_limited)
                        for chunk in batch
                    )
                )

                embedded = [o for o in outcomes if isinstance(o, EmbeddingChunk)]
                failures = [o for o in outcomes if isinstance(o, ChunkFailure)]
                result.failed_chunks.extend(failures)

                for failure in failures:
                    if isinstance(failure.exception, EmbeddingProviderConfigError):
                        raise failure.exception

                if not embedded:
                    raise BatchEmbeddingError(
                        "All chunks in batch failed to embed. Stopping indexing process.",
                        result.failed_chunks,
                    )

                try:
                    self._repository.insert_vectors(embedded)
                except (sqlite3.Error, ValueError) as exc:
                    raise IndexingError(
                        f"Failed to store embeddings: {exc}", result.failed_chunks
                    ) from exc
                result.inserted_chunks += len(embedded)

                for chunk in embedded:
                    tracker.chunks_completed(chunk.path)

                report(
                    completed_chunks=completed_chunks,
                    total_chunks=total_chunks,
                    completed_files=result.indexed_files_count,
                    waiting_for_rate_limit=False,
                )
        except EmbeddingProviderConfigError as exc:
            logger.error("Embedding provider is misconfigured: %s", exc)
            raise
        except IndexingCancelledError:
            logger.info("Indexing cancelled after %d chunk(s)", result.inserted_chunks)
            raise
        except IndexingError:
            logger.error(_chunk_failure_report(result.failed_chunks))
            raise

        if result.failed_chunks:
            logger.warning(_chunk_failure_report(result.failed_chunks))

    async def _chunk_file(self, file: VaultFile, chunker: BaseChunker) -> list[PendingChunk]:
        content = await self._vault.cached_read(file)
        sanitized = content.replace("\x00", "")
        return [
            PendingChunk(
                path=file.path,
                mtime=file.mtime,
                content=c.content,
                metadata=VectorMetadata(start_line=c.start_line, end_line=c.end_line),
            )
            for c in chunker.split(sanitized)
        ]

    async def _embed_chunk(
        self,
        chunk: PendingChunk,
        embedding_model: EmbeddingModelClient,
        on_embedded: Callable[[], None],
        on_rate_limited: Callable[[], None],
    ) -> EmbeddingChunk | ChunkFailure:
        async def attempt() -> EmbeddingChunk:
            if not chunk.content:
                raise ValueError(f"Chunk content is empty in file: {chunk.path}")
            if "\x00" in chunk.content:
                raise ValueError(f"Chunk content contains null bytes in file: {chunk.path}")
            embedding = await embedding_model.get_embedding(chunk.content)
            validate_vector(embedding, embedding_model.dimension)
            on_embedded()
            return EmbeddingChunk(
                path=chunk.path,
                mtime=chunk.mtime,
                content=chunk.content,
                model=embedding_model.id,
                dimension=embedding_model.dimension,
                embedding=list(embedding),
                metadata=chunk.metadata,
            )

        def should_retry(exc: Exception) -> bool:
            if is_rate_limit_error(exc):
                on_rate_limited()
                return True
            return False

        try:
            return await retry_with_backoff(attempt, self._backoff, should_retry, self._sleep)
        except Exception as exc:
            return ChunkFailure(
                path=chunk.path,
                metadata=chunk.metadata,
                error=_describe(exc),
                exception=exc,
            )

    # ------------------------------------------------------------------
    # File-set resolution
    # ------------------------------------------------------------------

    async def _delete_vectors_for_deleted_files(self, model_id: str) -> int:
        """Drop chunks of indexed paths that no longer exist. Returns files removed."""
        indexed = self._repository.get_indexed_file_paths(model_id)
        missing = sorted(p for p in indexed if not self._vault.exists(p))
        if missing:
            self._repository.delete_vectors_for_multiple_files(missing, model_id)
            logger.info("Removed vectors for %d deleted file(s)", len(missing))
        return len(missing)

    def _get_filtered_markdown_files(
        self, exclude_patterns: Sequence[str], include_patterns: Sequence[str]
    ) -> list[VaultFile]:
        return filter_files(self._vault.get_markdown_files(), include_patterns, exclude_patterns)

    async def _get_files_to_index_with_stats(
        self,
        model_id: str,
        exclude_patterns: Sequence[str],
        include_patterns: Sequence[str],
    ) -> tuple[list[VaultFile], int, int]:
        """Return (files to index, new count, updated count) via one mtime query."""
        all_files = self._get_filtered_markdown_files(exclude_patterns, include_patterns)
        mtime_map = self._repository.get_file_mtimes(model_id)

        files_to_index: list[VaultFile] = []
        new_count = 0
        updated_count = 0
        maybe_yield = YieldController(self._scheduler, every=_CLASSIFY_YIELD_EVERY)

        for file in all_files:
            await maybe_yield.maybe_yield()
            existing_mtime = mtime_map.get(file.path)
            if existing_mtime is None:
                try:
                    content = await self._vault.cached_read(file)
                except Exception:
                    # Unreadable now; the chunking phase records the failure.
                    content = None
                if content is None or len(content) > 0:
                    files_to_index.append(file)
                    new_count += 1
            elif file.mtime > existing_mtime:
                files_to_index.append(file)
                updated_count += 1

        return files_to_index, new_count, updated_count


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _check_cancelled(cancel_event: asyncio.Event | None, result: IndexResult) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise IndexingCancelledError("Indexing cancelled", result.failed_chunks)


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


def _chunk_failure_report(failures: list[ChunkFailure]) -> str:
    lines = [
        f"File: {f.path} (lines {f.metadata.start_line}-{f.metadata.end_line})\nError: {f.error}"
        for f in failures
    ]
    return f"Failed to embed {len(failures)} chunk(s):\n\n" + "\n\n".join(lines)
