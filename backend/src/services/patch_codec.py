"""Reversible text patches for note content, encoded as diff-match-patch patch text."""
from diff_match_patch import diff_match_patch

from services.exceptions import PatchApplyError


class PatchCodec:
    """
    Encode and apply reverse patches between two versions of a text.

    Invariant: make_reverse_patch(new, old) produces a patch that, applied to `new`,
    yields `old`. Note change records store these, so replaying them newest-first
    walks a note backwards in time.
    """

    def __init__(self, diff_timeout: float = 0.0) -> None:
        """Initialize the codec; diff_timeout 0 disables the differ's time budget."""
        self.dmp = diff_match_patch()
        self.dmp.Diff_Timeout = diff_timeout

    def make_reverse_patch(self, new_content: str, old_content: str) -> str | None:
        """
        Build the patch text that turns new_content back into old_content.

        Returns None when the two texts are identical (no content change to record).
        """
        if new_content == old_content:
            return None
        patches = self.dmp.patch_make(new_content, old_content)
        return self.dmp.patch_toText(patches)

    def apply(self, patch_text: str, content: str) -> str:
        """
        Apply patch text to content.

        Args:
            patch_text: Serialized diff-match-patch patch.
            content: Text to patch.

        Returns:
            The patched text.

        Raises:
            PatchApplyError: If the patch text cannot be parsed or any hunk fails to
                apply. A partially applied result is never returned.
        """
        try:
            patches = self.dmp.patch_fromText(patch_text)
        except ValueError as e:
            raise PatchApplyError(f"Corrupted patch: {e}") from e

        new_content, results = self.dmp.patch_apply(patches, content)
        if not all(results):
            failed = results.count(False)
            raise PatchApplyError(f"{failed} of {len(results)} hunks failed to apply")
        return new_content
