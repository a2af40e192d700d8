"""ContextCache -- cached reference data loaded from the document tree.

Scans the contact category directories, active projects, and coach notes
with best-effort markdown field extraction. Snapshots are reused for
CONTEXT_TTL_SECONDS; refreshes are single-flighted so concurrent callers
share one filesystem scan. When a refresh fails, the last good snapshot is
served instead (stale beats failing); only the very first load can fail.
"""

from __future__ import annotations

import asyncio
import re
import time
from datetime import datetime, timezone
from pathlib import Path

import structlog

from src.meeting_sync.context.schemas import (
    PARTNERS,
    Coach,
    Contact,
    ContextSnapshot,
    Project,
)
from src.meeting_sync.core.exceptions import ContextLoadError

logger = structlog.get_logger(__name__)


# ── Document tree layout (relative to the tree root) ────────────────────────

CONTACTS_DIR = Path("05-hr-department/network-contacts/by-category")
CONTACT_CATEGORIES = ("clients", "developers", "coaches", "potential-leads")
PROJECTS_DIR = Path("02-operations/project-management/active-projects")
COACHES_DIR = Path("05-hr-department/network-contacts/coaching-call-notes/by-coach")

_HEADING_RE = re.compile(r"^#\s+(.+?)\s*$", re.MULTILINE)
_FIELD_RE = re.compile(
    r"^[\s>*-]*\**\s*(?P<label>[A-Za-z][A-Za-z ]*?)\s*\**\s*:\s*\**\s*(?P<value>.+?)\s*$",
    re.MULTILINE,
)


# ── Best-effort markdown field extraction ───────────────────────────────────


def extract_fields(text: str) -> dict[str, str]:
    """Collect ``Label: value`` pairs, tolerating bold and list markers.

    The first occurrence of a label wins. Labels are lower-cased.
    """
    fields: dict[str, str] = {}
    for match in _FIELD_RE.finditer(text):
        label = match.group("label").strip().lower()
        value = match.group("value").strip().strip("*").strip()
        if value and label not in fields:
            fields[label] = value
    return fields


def extract_name(text: str, fallback: str) -> str:
    """Title from the first ``# `` heading, else a prettified file stem."""
    match = _HEADING_RE.search(text)
    if match:
        return match.group(1).strip()
    return fallback.replace("-", " ").replace("_", " ").title()


def _markdown_files(directory: Path) -> list[Path]:
    """Markdown files in a directory, sorted. Missing directory -> []."""
    if not directory.exists():
        return []
    return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix == ".md")


def _read(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        logger.warning("context.file_skipped", path=str(path), exc_info=True)
        return None


def parse_contact(path: Path, category: str, root: Path) -> Contact | None:
    text = _read(path)
    if text is None:
        return None
    fields = extract_fields(text)
    return Contact(
        name=extract_name(text, path.stem),
        category=category,
        email=fields.get("email"),
        company=fields.get("company"),
        role=fields.get("role") or fields.get("title"),
        file_path=str(path.relative_to(root)),
    )


def parse_project(path: Path, root: Path) -> Project | None:
    text = _read(path)
    if text is None:
        return None
    fields = extract_fields(text)
    return Project(
        name=extract_name(text, path.stem),
        client=fields.get("client"),
        status=fields.get("status"),
        file_path=str(path.relative_to(root)),
    )


def parse_coach(path: Path, root: Path) -> Coach | None:
    text = _read(path)
    if text is None:
        return None
    fields = extract_fields(text)
    return Coach(
        name=extract_name(text, path.stem),
        specialty=fields.get("specialty") or fields.get("focus"),
        file_path=str(path.relative_to(root)),
    )


def scan_document_tree(root: Path) -> ContextSnapshot:
    """Blocking scan of the document tree. Run via asyncio.to_thread.

    Raises:
        OSError: The tree root is missing or a directory cannot be listed.
    """
    if not root.is_dir():
        raise FileNotFoundError(f"Document root not found: {root}")

    contacts: list[Contact] = []
    for category in CONTACT_CATEGORIES:
        for path in _markdown_files(root / CONTACTS_DIR / category):
            contact = parse_contact(path, category, root)
            if contact is not None:
                contacts.append(contact)

    projects = [
        p for p in (parse_project(path, root) for path in _markdown_files(root / PROJECTS_DIR))
        if p is not None
    ]
    coaches = [
        c for c in (parse_coach(path, root) for path in _markdown_files(root / COACHES_DIR))
        if c is not None
    ]

    return ContextSnapshot(
        contacts=contacts,
        projects=projects,
        coaches=coaches,
        partners=list(PARTNERS),
        timestamp=datetime.now(timezone.utc),
    )


# ── ContextCache ─────────────────────────────────────────────────────────────


class ContextCache:
    """TTL cache of ContextSnapshot with single-flight refresh.

    Args:
        root: Tree-root directory (``OS_PATH/claude-code-os-implementation``).
        ttl_seconds: Snapshot lifetime; defaults to 5 minutes.
    """

    def __init__(self, root: Path, ttl_seconds: float = 300.0) -> None:
        self._root = root
        self._ttl = ttl_seconds
        self._snapshot: ContextSnapshot | None = None
        self._loaded_at: float = 0.0
        self._generation = 0
        self._last_error: OSError | None = None
        self._lock = asyncio.Lock()

    def _is_fresh(self) -> bool:
        return (
            self._snapshot is not None
            and (time.monotonic() - self._loaded_at) < self._ttl
        )

    def invalidate(self) -> None:
        """Expire the cached snapshot; the stale copy stays as a fallback."""
        self._loaded_at = 0.0

    async def load(self, force_refresh: bool = False) -> ContextSnapshot:
        """Return a fresh-enough snapshot, refreshing at most once at a time.

        Args:
            force_refresh: Skip the TTL check. Callers queued behind an
                in-flight refresh reuse its result rather than scanning again.

        Raises:
            ContextLoadError: The refresh failed and there is no previous
                snapshot to fall back to.
        """
        if not force_refresh and self._is_fresh():
            return self._snapshot  # type: ignore[return-value]

        generation_seen = self._generation
        async with self._lock:
            # Another caller refreshed (or failed to) while we waited on the lock
            if self._generation != generation_seen:
                if self._snapshot is not None:
                    return self._snapshot
                raise ContextLoadError(f"Unable to load context: {self._last_error}") from self._last_error
            if not force_refresh and self._is_fresh():
                return self._snapshot  # type: ignore[return-value]

            try:
                snapshot = await asyncio.to_thread(scan_document_tree, self._root)
            except OSError as exc:
                self._last_error = exc
                self._generation += 1
                if self._snapshot is not None:
                    logger.warning(
                        "context.refresh_failed_using_stale",
                        root=str(self._root),
                        error=str(exc),
                        snapshot_timestamp=self._snapshot.timestamp.isoformat(),
                    )
                    return self._snapshot
                logger.error("context.load_failed", root=str(self._root), error=str(exc))
                raise ContextLoadError(f"Unable to load context: {exc}") from exc

            self._snapshot = snapshot
            self._loaded_at = time.monotonic()
            self._last_error = None
            self._generation += 1

            logger.info(
                "context.loaded",
                contacts=len(snapshot.contacts),
                projects=len(snapshot.projects),
                coaches=len(snapshot.coaches),
            )
            return snapshot
