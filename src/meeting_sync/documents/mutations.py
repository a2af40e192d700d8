"""MutationEngine -- applies declarative file mutations to the document tree.

Two phases:

1. **Write.** Mutations run strictly in order. Every path is checked for
   containment before the first write. A failing write stops the batch;
   earlier mutations stay applied and the error carries the partial result.
2. **Commit.** Changed paths are staged and committed (and optionally
   pushed). Commit failures are recorded on the batch result and never
   unwind the writes.
"""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import Sequence
from enum import Enum
from pathlib import Path

import structlog
from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from src.meeting_sync.core.exceptions import GitCommandError, MutationError, PathContainmentError
from src.meeting_sync.documents.git import GitRepository
from src.meeting_sync.documents.sections import MarkdownDocument
from src.meeting_sync.processing.schemas import FileMutation, MutationAction
from src.meeting_sync.processing.validator import SAFE_PATH_RE

logger = structlog.get_logger(__name__)

WRITE_ATTEMPTS = 3


class CommitStatus(str, Enum):
    COMMITTED = "committed"
    SKIPPED = "skipped"
    NOTHING_TO_COMMIT = "nothing_to_commit"
    FAILED = "failed"


class MutationResult(BaseModel):
    index: int
    action: MutationAction
    path: str
    applied: bool
    created: bool = False


class MutationBatchResult(BaseModel):
    """Outcome of one batch; distinguishes "written but not committed"."""

    results: list[MutationResult] = Field(default_factory=list)
    failed_index: int | None = None
    error: str | None = None
    commit: CommitStatus = CommitStatus.SKIPPED
    commit_error: str | None = None
    pushed: bool = False
    push_error: str | None = None

    @property
    def applied(self) -> list[MutationResult]:
        return [r for r in self.results if r.applied]

    @property
    def succeeded(self) -> bool:
        return self.failed_index is None


class BatchMeta(BaseModel):
    """What the commit message says about the batch."""

    title: str
    meeting_type: str = "other"
    action_item_count: int = 0


def resolve_path(root: Path, root_marker: str, raw_path: str) -> Path:
    """Map an untrusted tree path onto the filesystem, or refuse it.

    Raises:
        PathContainmentError: Missing prefix, unsafe characters, a ``..``
            segment, or a location outside ``root``.
    """
    if not raw_path.startswith(root_marker):
        raise PathContainmentError(f"Path lacks tree-root prefix: {raw_path}")
    if not SAFE_PATH_RE.match(raw_path):
        raise PathContainmentError(f"Invalid characters in path: {raw_path}")

    relative = raw_path[len(root_marker):]
    if not relative or relative.startswith("/"):
        raise PathContainmentError(f"Not a file path under the tree root: {raw_path}")
    if ".." in relative.split("/"):
        raise PathContainmentError(f"Parent directory segment in path: {raw_path}")

    base = root.resolve()
    target = (base / relative).resolve()
    if target == base or not target.is_relative_to(base):
        raise PathContainmentError(f"Path escapes the document tree: {raw_path}")
    return target


# ── Blocking file operations (run in a worker thread) ───────────────────────


def _read(path: Path) -> str:
    with path.open(encoding="utf-8", newline="") as fh:
        return fh.read()


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as fh:
        fh.write(content)


def create_file(path: Path, content: str) -> bool:
    existed = path.exists()
    _write(path, content)
    return not existed


def append_file(path: Path, content: str) -> bool:
    if not path.exists():
        return create_file(path, content)
    _write(path, _read(path).rstrip() + "\n" + content)
    return False


def update_section_file(path: Path, section: str, content: str) -> bool:
    if path.exists():
        doc = MarkdownDocument.parse(_read(path))
        created = False
    else:
        doc = MarkdownDocument()
        created = True
    doc.upsert_section(section, content)
    _write(path, doc.serialize())
    return created


def _is_transient_os_error(exc: BaseException) -> bool:
    permanent = (IsADirectoryError, NotADirectoryError, PermissionError, FileExistsError)
    return isinstance(exc, OSError) and not isinstance(exc, permanent)


# ── Engine ──────────────────────────────────────────────────────────────────


class MutationEngine:
    """Applies file mutations under a document root and commits them.

    Args:
        root: Document-tree root directory (tree-root marker already applied).
        root_marker: Prefix every mutation path carries.
        git: Repository holding ``root``; None disables the commit phase.
        auto_commit: Commit after a successful batch.
        auto_push: Push after a successful commit.
    """

    def __init__(
        self,
        root: Path,
        root_marker: str = "claude-code-os-implementation/",
        git: GitRepository | None = None,
        auto_commit: bool = True,
        auto_push: bool = False,
    ) -> None:
        self.root = Path(root)
        self.root_marker = root_marker
        self._git = git
        self._auto_commit = auto_commit
        self._auto_push = auto_push
        # Entries vanish once no mutation holds or awaits the lock
        self._path_locks: weakref.WeakValueDictionary[Path, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, path: Path) -> asyncio.Lock:
        lock = self._path_locks.get(path)
        if lock is None:
            lock = asyncio.Lock()
            self._path_locks[path] = lock
        return lock

    async def _apply_one(self, mutation: FileMutation, target: Path) -> bool:
        if mutation.action == MutationAction.CREATE:
            call = (create_file, target, mutation.content)
        elif mutation.action == MutationAction.APPEND:
            call = (append_file, target, mutation.content)
        else:
            if not (mutation.section or "").strip():
                raise MutationError(f"update_section without a section name: {mutation.path}")
            call = (update_section_file, target, mutation.section, mutation.content)

        created = False
        lock = self._lock_for(target)
        async with lock:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(WRITE_ATTEMPTS),
                wait=wait_exponential(multiplier=0.1, max=1),
                retry=retry_if_exception(_is_transient_os_error),
                reraise=True,
            ):
                with attempt:
                    created = await asyncio.to_thread(*call)
        return created

    async def apply(self, mutations: Sequence[FileMutation], meta: BatchMeta) -> MutationBatchResult:
        """Apply mutations in order, then commit.

        Raises:
            PathContainmentError: A path is unsafe; nothing was written.
            MutationError: Mutation ``failed_index`` failed; earlier ones
                are applied, later ones were never attempted.
        """
        batch = MutationBatchResult()

        targets: list[Path] = []
        for index, mutation in enumerate(mutations):
            try:
                targets.append(resolve_path(self.root, self.root_marker, mutation.path))
            except PathContainmentError as exc:
                batch.failed_index = index
                batch.error = str(exc)
                logger.error("mutation.path_rejected", index=index, path=mutation.path, error=str(exc))
                raise PathContainmentError(str(exc), batch=batch) from exc

        for index, (mutation, target) in enumerate(zip(mutations, targets)):
            try:
                created = await self._apply_one(mutation, target)
            except (OSError, UnicodeError, MutationError) as exc:
                batch.results.append(
                    MutationResult(index=index, action=mutation.action, path=mutation.path, applied=False)
                )
                batch.failed_index = index
                batch.error = str(exc)
                logger.error(
                    "mutation.failed",
                    index=index,
                    action=mutation.action.value,
                    path=mutation.path,
                    applied_before=index,
                    error=str(exc),
                )
                raise MutationError(
                    f"Mutation {index} ({mutation.action.value} {mutation.path}) failed: {exc}",
                    batch=batch,
                ) from exc

            batch.results.append(
                MutationResult(
                    index=index,
                    action=mutation.action,
                    path=mutation.path,
                    applied=True,
                    created=created,
                )
            )
            logger.info("mutation.applied", index=index, action=mutation.action.value, path=mutation.path)

        changed = list(dict.fromkeys(targets))
        await self._commit(changed, meta, batch)
        return batch

    async def _commit(self, changed: list[Path], meta: BatchMeta, batch: MutationBatchResult) -> None:
        if self._git is None or not self._auto_commit or not changed:
            batch.commit = CommitStatus.SKIPPED
            return

        async with self._git.lock:
            try:
                await self._git.add(changed)
                committed = await self._git.commit(build_commit_message(meta, len(changed)))
            except (GitCommandError, OSError) as exc:
                batch.commit = CommitStatus.FAILED
                batch.commit_error = str(exc)
                logger.error("mutation.commit_failed", error=str(exc), files=len(changed))
                return

            if not committed:
                batch.commit = CommitStatus.NOTHING_TO_COMMIT
                return
            batch.commit = CommitStatus.COMMITTED

            if self._auto_push:
                try:
                    await self._git.push()
                    batch.pushed = True
                except (GitCommandError, OSError) as exc:
                    batch.push_error = str(exc)
                    logger.error("mutation.push_failed", error=str(exc))


def build_commit_message(meta: BatchMeta, file_count: int) -> str:
    return (
        f"Add meeting notes: {meta.title}\n\n"
        f"Type: {meta.meeting_type}\n"
        f"Files updated: {file_count}\n"
        f"Action items: {meta.action_item_count}\n\n"
        "Processed by Fathom Integration"
    )
