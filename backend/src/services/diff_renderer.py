"""Human-readable text diffs between two versions, bounded for display."""
from dataclasses import dataclass
from enum import StrEnum

from diff_match_patch import diff_match_patch

from core.config import MIN_DIFF_DISPLAY_LIMIT

DEFAULT_DISPLAY_LIMIT = 500

TRUNCATION_MARKER = "... [truncated, {omitted} more characters]"


class DiffKind(StrEnum):
    """Kind of a diff run, relative to going from the older text to the newer one."""

    EQUAL = "equal"
    INSERT = "insert"
    DELETE = "delete"


_KIND_BY_OP = {
    diff_match_patch.DIFF_EQUAL: DiffKind.EQUAL,
    diff_match_patch.DIFF_INSERT: DiffKind.INSERT,
    diff_match_patch.DIFF_DELETE: DiffKind.DELETE,
}


@dataclass(frozen=True)
class DiffRun:
    """One contiguous run of a rendered diff."""

    kind: DiffKind
    text: str
    omitted: int = 0  # Characters cut from this run by truncation


def truncate_text(text: str, limit: int) -> tuple[str, int]:
    """
    Cut text so that, with the truncation marker appended, it fits within limit.

    Returns:
        Tuple of (display text, number of characters omitted). Text already within
        the limit is returned unchanged with 0 omitted.
    """
    if len(text) <= limit:
        return text, 0

    # The marker's length depends on the omitted count, which depends on how much
    # is kept. keep only ever shrinks, so this settles in a couple of rounds.
    keep = limit
    while True:
        marker = TRUNCATION_MARKER.format(omitted=len(text) - keep)
        new_keep = max(limit - len(marker), 0)
        if new_keep == keep:
            break
        keep = new_keep
    return text[:keep] + marker, len(text) - keep


class DiffRenderer:
    """
    Compute display diffs between two text blobs.

    Uses diff-match-patch's minimal edit script followed by semantic cleanup, which
    merges character-level fragments into word- and phrase-sized chunks.
    """

    def __init__(
        self,
        display_limit: int = DEFAULT_DISPLAY_LIMIT,
        diff_timeout: float = 0.0,
    ) -> None:
        """
        Initialize the renderer.

        Args:
            display_limit: Maximum rendered length of any single run.
            diff_timeout: Time budget for the differ in seconds; 0 means unbounded,
                which keeps output identical across runs and machines.
        """
        if display_limit < MIN_DIFF_DISPLAY_LIMIT:
            raise ValueError(
                f"display_limit must be at least {MIN_DIFF_DISPLAY_LIMIT}, got {display_limit}",
            )
        self.display_limit = display_limit
        self.dmp = diff_match_patch()
        self.dmp.Diff_Timeout = diff_timeout

    def render(self, older: str, newer: str) -> list[DiffRun]:
        """
        Render the diff from older to newer.

        Identical inputs produce exactly one EQUAL run covering the whole text (even
        when the text is empty).
        """
        if older == newer:
            diffs = [(diff_match_patch.DIFF_EQUAL, older)]
        else:
            diffs = self.dmp.diff_main(older, newer)
            self.dmp.diff_cleanupSemantic(diffs)

        runs = []
        for op, text in diffs:
            display_text, omitted = truncate_text(text, self.display_limit)
            runs.append(DiffRun(kind=_KIND_BY_OP[op], text=display_text, omitted=omitted))
        return runs


def render_diff(
    older: str,
    newer: str,
    display_limit: int = DEFAULT_DISPLAY_LIMIT,
) -> list[DiffRun]:
    """Render the diff from older to newer with a one-off renderer."""
    return DiffRenderer(display_limit=display_limit).render(older, newer)
