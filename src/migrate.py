"""
State version migrator for persisted resource state.

Applies forward-only upgrade steps to state records written by older
engine versions. Each step is a pure transform from version N to N+1;
steps run in order with no skipping, and versions the engine does not
know are refused rather than guessed at.
"""

import copy
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from errors import UnsupportedStateVersion

logger = logging.getLogger(__name__)

VERSION_KEY = "schema_version"

StateUpgrader = Callable[[Dict[str, Any]], Dict[str, Any]]


def declared_version_of(
    raw_state: Mapping[str, Any], declared_version: Optional[int] = None
) -> int:
    """
    Work out which version a raw record was written under.

    The record's own version tag wins; the caller's declared version is
    used for records that predate version tags. Untagged records with no
    declared version are version 0.
    """
    tagged = raw_state.get(VERSION_KEY)
    if tagged is not None:
        if declared_version is not None and int(tagged) != declared_version:
            logger.warning(
                f"State record is tagged version {tagged} but was declared as "
                f"version {declared_version}; using the record's tag"
            )
        return int(tagged)
    if declared_version is not None:
        return declared_version
    return 0


class StateMigrator:
    """
    Upgrades raw persisted state to the current layout.

    Args:
        current_version: The version this engine writes.
        upgraders: Mapping of source version N to the step producing N+1.
    """

    def __init__(
        self,
        current_version: int,
        upgraders: Optional[Mapping[int, StateUpgrader]] = None,
    ):
        self.current_version = current_version
        self.upgraders: Dict[int, StateUpgrader] = dict(upgraders or {})

    def pending_steps(self, version: int) -> List[Tuple[int, StateUpgrader]]:
        """
        Return the (source_version, step) pairs needed to reach current.

        Raises:
            UnsupportedStateVersion: If the version is negative, newer than
                current, or a step on the way is missing.
        """
        if version < 0 or version > self.current_version:
            raise UnsupportedStateVersion(version, self.current_version)

        steps = []
        for source in range(version, self.current_version):
            upgrader = self.upgraders.get(source)
            if upgrader is None:
                raise UnsupportedStateVersion(version, self.current_version)
            steps.append((source, upgrader))
        return steps

    def migrate(
        self,
        raw_state: Mapping[str, Any],
        declared_version: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Upgrade a raw state record to the current version.

        Migrating a record already at the current version returns an equal
        copy, so running the migrator unconditionally is safe.

        Args:
            raw_state: The record as loaded.
            declared_version: Version to assume when the record has no tag.

        Returns:
            A new dict at the current version; the input is never modified.
        """
        try:
            version = declared_version_of(raw_state, declared_version)
        except (TypeError, ValueError):
            raise UnsupportedStateVersion(
                raw_state.get(VERSION_KEY), self.current_version
            )

        state = copy.deepcopy(dict(raw_state))
        steps = self.pending_steps(version)

        for source, upgrader in steps:
            state = upgrader(copy.deepcopy(state))
            state[VERSION_KEY] = source + 1
            logger.info(f"Upgraded state schema v{source} -> v{source + 1}")

        state[VERSION_KEY] = self.current_version
        return state
