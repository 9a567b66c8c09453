# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Whether a source file has to be rebuilt before it runs.

This is a pure function of the stored entry and the file's current
fingerprint, so it can be checked without a compiler or a cache file.
"""

import enum
from dataclasses import dataclass
from typing import Optional

from erunner.cache.models import FileCache
from erunner.utils.hashing import fingerprints_match


class BuildReason(enum.Enum):
    NEW_FILE = "new-file"
    PENDING_RECOMPILATION = "pending-recompilation"
    SOURCE_CHANGED = "source-changed"
    FORCED = "forced"
    UP_TO_DATE = "up-to-date"


@dataclass(frozen=True)
class BuildPlan:
    """
    Outcome of the rebuild decision.

    `file_cache` is the entry to persist once the build succeeds: it
    carries the new fingerprint and keeps every registered test.
    """

    file_cache: FileCache
    needs_rebuild: bool
    reason: BuildReason


def plan_build(entry: Optional[FileCache], fingerprint: str, force: bool = False) -> BuildPlan:
    if entry is None:
        return BuildPlan(
            file_cache=FileCache(source_hash=fingerprint, tests=[]),
            needs_rebuild=True,
            reason=BuildReason.NEW_FILE,
        )

    if entry.pending_recompilation:
        return BuildPlan(entry.with_hash(fingerprint), True, BuildReason.PENDING_RECOMPILATION)

    if not fingerprints_match(entry.source_hash, fingerprint):
        return BuildPlan(entry.with_hash(fingerprint), True, BuildReason.SOURCE_CHANGED)

    if force:
        return BuildPlan(entry, True, BuildReason.FORCED)

    return BuildPlan(entry, False, BuildReason.UP_TO_DATE)
