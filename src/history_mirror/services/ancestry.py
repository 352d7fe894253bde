"""Ancestry check gating the export pipeline."""

import logging

from ..exceptions import AncestryError
from ..models import Revision
from .repository import RepositoryHandle

logger = logging.getLogger(__name__)


class AncestryValidator:
    """Confirms the pull request base is the merge base of base and head.

    The merge base is always recomputed from the two boundary revisions; a
    merge base reported by the hosting service can be stale and is never used.
    """

    def validate(self, repo: RepositoryHandle, base: Revision, head: Revision) -> None:
        """
        Raises:
            AncestryError: If merge_base(base, head) is not base
        """
        merge_base = repo.merge_base(base, head)
        if merge_base != base:
            logger.error(
                f"Ancestry check failed: base={base} head={head} merge-base={merge_base}"
            )
            raise AncestryError(
                base.sha, head.sha, merge_base.sha if merge_base else None
            )
        logger.info(f"Ancestry check passed: {base.short} is an ancestor of {head.short}")
