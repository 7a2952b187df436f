"""
Artifact registry for one analysis session.

Holds artifacts in insertion order and enforces title uniqueness: a second
"Revenue" is stored as "Revenue (2)", a third as "Revenue (3)", and so on.
Artifacts are immutable; the review flag and report revisions are applied
by swapping in a ``dataclasses.replace`` copy.
"""

import logging
from dataclasses import replace
from typing import Iterator, Optional

from .artifacts import Artifact, strip_type_tag

logger = logging.getLogger("tabula")


class ArtifactRegistry:
    """Ordered, title-unique collection of artifacts."""

    def __init__(self):
        self._artifacts: list[Artifact] = []

    def add(self, artifact: Artifact) -> Artifact:
        """Store *artifact* under a unique title and return the stored copy."""
        base = artifact.title
        title = base
        counter = 2
        taken = {a.title for a in self._artifacts}
        while title in taken:
            title = f"{base} ({counter})"
            counter += 1
        if title != base:
            logger.debug("Artifact title %r already used, stored as %r", base, title)
            artifact = replace(artifact, title=title)
        self._artifacts.append(artifact)
        return artifact

    def find(self, title: str) -> Optional[Artifact]:
        """Resolve *title*, preferring the most recently added match.

        An exact match wins; otherwise titles are compared with their
        ``[kind]`` tags removed.
        """
        wanted = (title or "").strip()
        if not wanted:
            return None
        for artifact in reversed(self._artifacts):
            if artifact.title.strip() == wanted:
                return artifact
        stripped = strip_type_tag(wanted)
        for artifact in reversed(self._artifacts):
            if strip_type_tag(artifact.title) == stripped:
                return artifact
        return None

    def swap(self, old: Artifact, new: Artifact) -> Artifact:
        """Replace *old* (matched by identity) with *new*."""
        for i, artifact in enumerate(self._artifacts):
            if artifact is old:
                self._artifacts[i] = new
                return new
        raise KeyError(old.title)

    def mark_all_reviewed(self) -> None:
        self._artifacts = [
            a if a.reviewed else replace(a, reviewed=True) for a in self._artifacts
        ]

    def all(self) -> list[Artifact]:
        return list(self._artifacts)

    def reset(self) -> None:
        self._artifacts.clear()

    def __iter__(self) -> Iterator[Artifact]:
        return iter(list(self._artifacts))

    def __len__(self) -> int:
        return len(self._artifacts)
