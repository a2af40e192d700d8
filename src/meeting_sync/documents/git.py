"""Async git access for the document tree.

Every command runs as an asyncio subprocess under one repository-wide lock,
so concurrent batches never interleave ``add``/``commit``/``push``.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Sequence
from pathlib import Path

import structlog

from src.meeting_sync.core.exceptions import GitCommandError

logger = structlog.get_logger(__name__)

_NOTHING_TO_COMMIT = ("nothing to commit", "no changes added to commit", "nothing added to commit")


class GitRepository:
    """Thin async wrapper around the ``git`` CLI for one working tree.

    Args:
        path: Working tree root (the directory containing ``.git``).
        author_name: Commit author name.
        author_email: Commit author email.
    """

    def __init__(self, path: Path, author_name: str, author_email: str) -> None:
        self.path = Path(path)
        self._author = f"{author_name} <{author_email}>"
        self._env = {
            **os.environ,
            "GIT_COMMITTER_NAME": author_name,
            "GIT_COMMITTER_EMAIL": author_email,
        }
        self.lock = asyncio.Lock()

    async def _run(self, *args: str) -> str:
        process = await asyncio.create_subprocess_exec(
            "git",
            *args,
            cwd=str(self.path),
            env=self._env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
        out = stdout.decode(errors="replace")
        if process.returncode != 0:
            raise GitCommandError(args[0], process.returncode or -1, stderr.decode(errors="replace") + out)
        return out

    async def add(self, paths: Sequence[Path]) -> None:
        if paths:
            await self._run("add", "--", *(str(p) for p in paths))

    async def commit(self, message: str) -> bool:
        """Commit the index. Returns False when there was nothing to commit."""
        try:
            await self._run("commit", "-m", message, f"--author={self._author}")
        except GitCommandError as exc:
            if any(marker in exc.stderr.lower() for marker in _NOTHING_TO_COMMIT):
                logger.info("git.nothing_to_commit", repo=str(self.path))
                return False
            raise
        logger.info("git.committed", repo=str(self.path), subject=message.splitlines()[0])
        return True

    async def push(self) -> None:
        await self._run("push")
        logger.info("git.pushed", repo=str(self.path))
