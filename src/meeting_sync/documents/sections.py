"""Structured markdown model for section-level patching.

A document is a preamble followed by an ordered list of sections, each
introduced by a second-level heading (``## name``). Deeper headings stay
inside section bodies, and lines inside fenced code blocks are never
treated as headings. Parsing keeps every original line ending, so
serializing an untouched document reproduces it byte for byte.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_HEADING_RE = re.compile(r"^##[ \t]+(?P<name>.*?)(?:[ \t]+#+)?[ \t]*$")
_FENCE_RE = re.compile(r"^[ \t]{0,3}(?P<fence>`{3,}|~{3,})")


def _normalize(name: str) -> str:
    return name.strip().casefold()


@dataclass
class Section:
    """One ``## heading`` block and everything up to the next one."""

    name: str
    heading_line: str
    body: str = ""

    @property
    def content(self) -> str:
        """Body without the blank lines that surround it."""
        return self.body.strip("\n")


@dataclass
class MarkdownDocument:
    preamble: str = ""
    sections: list[Section] = field(default_factory=list)

    @classmethod
    def parse(cls, text: str) -> MarkdownDocument:
        doc = cls()
        current: Section | None = None
        buffer: list[str] = []
        open_fence: str | None = None

        def flush() -> None:
            if current is None:
                doc.preamble = "".join(buffer)
            else:
                current.body = "".join(buffer)
                doc.sections.append(current)

        for line in text.splitlines(keepends=True):
            stripped = line.rstrip("\r\n")
            fence = _FENCE_RE.match(stripped)
            if fence:
                marker = fence.group("fence")
                if open_fence is None:
                    open_fence = marker
                elif marker[0] == open_fence[0] and len(marker) >= len(open_fence):
                    open_fence = None
                buffer.append(line)
                continue

            heading = None if open_fence else _HEADING_RE.match(stripped)
            if heading:
                flush()
                current = Section(name=heading.group("name"), heading_line=line)
                buffer = []
            else:
                buffer.append(line)

        flush()
        return doc

    def find(self, name: str) -> Section | None:
        """First section whose heading matches ``name`` case-insensitively."""
        wanted = _normalize(name)
        for section in self.sections:
            if _normalize(section.name) == wanted:
                return section
        return None

    def upsert_section(self, name: str, content: str) -> bool:
        """Replace a section body, or append a new section at the end.

        Returns:
            True when an existing section was replaced.
        """
        new_body = content.rstrip("\n")
        existing = self.find(name)
        if existing is not None:
            old = existing.body
            trailing = old[len(old.rstrip("\n")):] or "\n"
            existing.body = new_body + trailing
            return True

        tail = self.sections[-1] if self.sections else None
        if tail is not None:
            if not tail.body.endswith("\n"):
                tail.body += "\n"
            if not tail.body.endswith("\n\n"):
                tail.body += "\n"
        elif self.preamble:
            if not self.preamble.endswith("\n"):
                self.preamble += "\n"
            if not self.preamble.endswith("\n\n"):
                self.preamble += "\n"

        self.sections.append(
            Section(name=name.strip(), heading_line=f"## {name.strip()}\n", body=new_body + "\n")
        )
        return False

    def serialize(self) -> str:
        parts = [self.preamble]
        for section in self.sections:
            parts.append(section.heading_line)
            parts.append(section.body)
        return "".join(parts)
