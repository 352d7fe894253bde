"""Pull request context from the host's webhook event payload."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import PreconditionError
from .models import PullRequestRange

logger = logging.getLogger(__name__)


class BranchRef(BaseModel):
    """One side (base or head) of a pull request."""

    model_config = ConfigDict(extra="ignore")

    sha: Optional[str] = Field(default=None, description="Commit the side points to")
    ref: Optional[str] = Field(default=None, description="Branch name")


class PullRequestPayload(BaseModel):
    """The `pull_request` object of a pull request event."""

    model_config = ConfigDict(extra="ignore")

    number: Optional[int] = None
    merged: bool = False
    base: BranchRef = Field(default_factory=BranchRef)
    head: BranchRef = Field(default_factory=BranchRef)
    # Reported by the server but may be stale; ancestry is always recomputed
    merge_base_commit_sha: Optional[str] = None

    def to_range(self) -> PullRequestRange:
        """Boundaries of the pull request.

        Raises:
            PreconditionError: If the base or head commit is missing
        """
        if not self.base.sha:
            raise PreconditionError("Failed to retrieve PR base from context. Abort.")
        if not self.head.sha:
            raise PreconditionError("Failed to retrieve PR head from context. Abort.")
        return PullRequestRange(
            base_sha=self.base.sha,
            head_sha=self.head.sha,
            head_ref=self.head.ref,
            number=self.number,
        )


def parse_event(event: Mapping[str, Any]) -> PullRequestPayload:
    """Extract the pull request from a decoded event payload.

    Raises:
        PreconditionError: If the event carries no pull request
    """
    pull_request = event.get("pull_request")
    if not pull_request:
        raise PreconditionError("PR context is unset. Abort.")
    try:
        return PullRequestPayload.model_validate(pull_request)
    except ValidationError as e:
        raise PreconditionError("Malformed pull request context", str(e))


def load_event(
    path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None
) -> PullRequestPayload:
    """Load the pull request from an event file.

    Args:
        path: Event payload file; defaults to $GITHUB_EVENT_PATH
        environ: Environment to read GITHUB_EVENT_PATH from

    Raises:
        PreconditionError: If no event file is available or it has no pull request
    """
    if path is None:
        env = environ if environ is not None else os.environ
        event_path = env.get("GITHUB_EVENT_PATH")
        if not event_path:
            raise PreconditionError(
                "PR context is unset. Abort.", "GITHUB_EVENT_PATH not set"
            )
        path = Path(event_path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            event: Dict[str, Any] = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise PreconditionError(f"Failed to read event payload {path}", str(e))

    logger.debug(f"Loaded event payload from {path}")
    return parse_event(event)
