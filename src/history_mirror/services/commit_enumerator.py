"""Ordered listing of the revisions to export."""

import logging

from ..models import CommitSequence, Revision
from .repository import RepositoryHandle

logger = logging.getLogger(__name__)


class CommitEnumerator:
    """Lists head's first-parent chain after base, oldest first.

    Second parents of merge commits are ignored, so a pull request that merged
    other branches in is exported as its first-parent view only.
    """

    def enumerate(
        self, repo: RepositoryHandle, base: Revision, head: Revision
    ) -> CommitSequence:
        if base == head:
            return ()
        sequence = tuple(repo.list_first_parent_range(base, head))
        logger.info(f"{len(sequence)} revision(s) to export after {base.short}")
        return sequence
