"""
Reconciler - Lifecycle state machine for remote-managed resources.

Drives one resource through Create, Read, Update and Delete against a
remote API, using a ResourceKind descriptor for everything kind specific.
Each verb is an independent sequential operation with its own deadline;
concurrent calls for different resources are safe, calls for the same
resource must be serialized by the caller.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from config import Config, TimeoutConfig
from errors import (
    AlreadyExists,
    AttributeNotProvisionable,
    EngineError,
    IdentifierUnavailable,
    MalformedLocator,
    OperationFailed,
    RemoteError,
    UnparseableIdentifier,
    from_remote_error,
)
from identifiers import ResourceLocator, encode
from kinds.base import ResourceKind
from operations import Deadline, OperationTracker, TerminalOutcome, run_within
from remote import MutationKind, MutationRequest, RemoteAPIClient, RemoteRecord
from state import (
    DesiredConfiguration,
    LifecyclePhase,
    PersistedState,
    ReadResult,
    UpdateResult,
)
from validation import validate_persisted_state

logger = logging.getLogger(__name__)

# Phase a verb is in while it talks to the provider
_VERB_PHASES = {
    "create": LifecyclePhase.CREATING,
    "read": LifecyclePhase.PRESENT,
    "update": LifecyclePhase.UPDATING,
    "delete": LifecyclePhase.DELETING,
}


@dataclass
class EngineDependencies:
    """Collaborators and settings the Reconciler is given explicitly."""

    client: RemoteAPIClient
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    poll_interval: float = 10.0
    import_check: bool = True
    tracker: Optional[OperationTracker] = None

    def __post_init__(self):
        if self.tracker is None:
            self.tracker = OperationTracker(self.client, self.poll_interval)

    @classmethod
    def from_config(cls, client: RemoteAPIClient, config: Config):
        """Build dependencies from loaded configuration."""
        return cls(
            client=client,
            timeouts=config.timeouts,
            poll_interval=config.engine.poll_interval,
            import_check=config.engine.import_check,
        )


class Reconciler:
    """
    Generic Create/Read/Update/Delete engine for one resource kind.

    The engine keeps no state between calls: PersistedState is passed in
    and handed back, and remote records are fetched fresh every time.
    """

    def __init__(self, kind: ResourceKind, deps: EngineDependencies):
        self.kind = kind
        self.deps = deps
        self.client = deps.client
        self.tracker = deps.tracker

    # Verbs

    async def create(
        self,
        desired: DesiredConfiguration,
        adopt_existing: bool = False,
        deadline: Optional[Deadline] = None,
    ) -> PersistedState:
        """
        Create the remote object declared by `desired`.

        Args:
            desired: The declared configuration.
            adopt_existing: When the import check finds the object already
                present, adopt it instead of failing with AlreadyExists.
            deadline: Overrides the configured create timeout.

        Raises:
            AlreadyExists: If the object exists and adoption was not asked for.
            IdentifierUnavailable: If the provider reports success but no
                identifier. Never retried, since the object may exist.
        """
        locator, target = self._locator_for(desired)
        deadline = deadline or self._deadline("create")

        with self._verb("create", target):
            if self.deps.import_check:
                existing = await self._lookup(locator, deadline)
                if existing is not None:
                    if not existing.identifier:
                        raise IdentifierUnavailable(
                            "existing object has no identifier to import"
                        )
                    if not adopt_existing:
                        raise AlreadyExists(existing.identifier, self.kind.name)
                    logger.info(f"Adopting existing {self.kind.name} {target}")
                    identifier = self._checked_identifier(existing.identifier)
                    state, _ = await self._observe(
                        identifier, locator, existing, deadline
                    )
                    return state

            self._transition(target, LifecyclePhase.ABSENT, LifecyclePhase.CREATING)
            outcome = await self.tracker.complete(
                self._mutation(
                    MutationKind.CREATE,
                    locator,
                    self.kind.build_payload(desired, creating=True),
                ),
                deadline,
            )
            self._require_success(outcome, "create")

            record = await self._lookup(locator, deadline)
            if record is None:
                raise OperationFailed("object not found after creation completed")
            if not record.identifier:
                raise IdentifierUnavailable(
                    "provider reported success but returned no identifier"
                )

            identifier = self._checked_identifier(record.identifier)
            state, _ = await self._observe(identifier, locator, record, deadline)
            self._transition(target, LifecyclePhase.CREATING, LifecyclePhase.PRESENT)
            return state

    async def read(
        self,
        persisted: PersistedState,
        deadline: Optional[Deadline] = None,
    ) -> ReadResult:
        """
        Refresh state from the remote object.

        A missing remote object is not an error: the result reports
        present=False and the caller should drop its local record.
        """
        target = persisted.identifier
        deadline = deadline or self._deadline("read")

        with self._verb("read", target):
            locator = self.kind.identifier_format.decode(persisted.identifier)

            record = await self._lookup(locator, deadline)
            if record is None:
                logger.info(
                    f"{self.kind.name} {target} no longer exists - removing from state"
                )
                return ReadResult(present=False)

            state, observed = await self._observe(
                persisted.identifier, locator, record, deadline
            )
            return ReadResult(present=True, state=state, observed=observed)

    async def update(
        self,
        persisted: PersistedState,
        desired: DesiredConfiguration,
        deadline: Optional[Deadline] = None,
    ) -> UpdateResult:
        """
        Push declared attributes to the remote object.

        Sub-resource attributes are updated separately after the main
        object. A sub-resource that does not exist yields an
        AttributeNotProvisionable warning on the result instead of failing
        the whole update.
        """
        target = persisted.identifier
        deadline = deadline or self._deadline("update")

        with self._verb("update", target):
            locator = self.kind.identifier_format.decode(persisted.identifier)
            self._transition(target, LifecyclePhase.PRESENT, LifecyclePhase.UPDATING)

            if desired.name != locator.resource_name:
                logger.warning(
                    f"Ignoring name change from {locator.resource_name!r} to "
                    f"{desired.name!r}: renaming requires replacement"
                )
            base = DesiredConfiguration(
                name=locator.resource_name,
                scope=self.kind.scope_from_locator(locator),
                attributes=dict(desired.attributes),
            )
            outcome = await self.tracker.complete(
                self._mutation(
                    MutationKind.UPDATE,
                    locator,
                    self.kind.build_payload(base, creating=False),
                ),
                deadline,
            )
            self._require_success(outcome, "update")

            warnings = []
            for sub in self.kind.sub_resources:
                value = desired.attributes.get(sub.attribute)
                if value == persisted.last_known_attributes.get(sub.attribute):
                    continue
                if value is None:
                    logger.info(
                        f"{sub.attribute} removed from declaration of {target}; "
                        f"leaving the remote setting in place"
                    )
                    continue

                sub_outcome = await self.tracker.complete(
                    self._mutation(
                        MutationKind.UPDATE,
                        sub.locator(locator),
                        self.kind.build_sub_payload(sub, value),
                    ),
                    deadline,
                )
                if sub_outcome.not_found:
                    warning = AttributeNotProvisionable(
                        sub.attribute, target, sub_outcome.cause or ""
                    )
                    logger.warning(str(warning))
                    warnings.append(warning)
                    continue
                self._require_success(sub_outcome, f"update of {sub.attribute}")

            record = await self._lookup(locator, deadline)
            if record is None:
                raise OperationFailed("object disappeared while being updated")

            state, observed = await self._observe(
                persisted.identifier, locator, record, deadline
            )
            self._transition(target, LifecyclePhase.UPDATING, LifecyclePhase.PRESENT)
            return UpdateResult(state=state, observed=observed, warnings=warnings)

    async def delete(
        self,
        persisted: PersistedState,
        deadline: Optional[Deadline] = None,
    ) -> None:
        """
        Delete the remote object.

        Deleting an object that is already gone succeeds. Returns None, the
        cleared state; on failure the caller keeps its state so the delete
        can be retried.
        """
        target = persisted.identifier
        deadline = deadline or self._deadline("delete")

        with self._verb("delete", target):
            locator = self.kind.identifier_format.decode(persisted.identifier)
            self._transition(target, LifecyclePhase.PRESENT, LifecyclePhase.DELETING)

            outcome = await self.tracker.complete(
                self._mutation(MutationKind.DELETE, locator), deadline
            )
            if outcome.not_found:
                logger.info(f"{self.kind.name} {target} was already deleted")
            elif not outcome.succeeded:
                raise OperationFailed(outcome.cause or "delete did not succeed")

            self._transition(target, LifecyclePhase.DELETING, LifecyclePhase.ABSENT)
            return None

    def load_state(
        self,
        raw_state: Mapping[str, Any],
        declared_version: Optional[int] = None,
    ) -> PersistedState:
        """
        Validate and upgrade a raw persisted record to the current layout.

        Raises:
            UnparseableIdentifier: If the record is malformed or its
                identifier does not fit this kind.
            UnsupportedStateVersion: If the record's version is unknown.
        """
        with self._verb("load", raw_state.get("identifier")):
            is_valid, error = validate_persisted_state(raw_state)
            if not is_valid:
                raise UnparseableIdentifier(f"invalid state record: {error}")

            migrated = self.kind.migrator().migrate(raw_state, declared_version)
            state = PersistedState.from_dict(migrated)
            self.kind.identifier_format.decode(state.identifier)
            return state

    # Helpers

    @contextmanager
    def _verb(self, verb: str, target: Optional[str]) -> Iterator[None]:
        """Attach verb/target context to every error leaving a verb."""
        try:
            yield
        except EngineError as e:
            e.bind(verb, target)
            self._failed(verb, e)
            raise
        except RemoteError as e:
            err = from_remote_error(e).bind(verb, target)
            self._failed(verb, err)
            raise err from e

    def _failed(self, verb: str, err: EngineError) -> None:
        phase = _VERB_PHASES.get(verb)
        if phase is not None:
            self._transition(err.target, phase, LifecyclePhase.FAILED)
        logger.error(f"{self.kind.name} {verb} failed: {err}")

    def _transition(
        self, target: str, before: LifecyclePhase, after: LifecyclePhase
    ) -> None:
        logger.info(f"{self.kind.name} {target}: {before.value} -> {after.value}")

    def _checked_identifier(self, identifier: str) -> str:
        """Refuse an identifier later verbs would not be able to decode."""
        try:
            self.kind.identifier_format.decode(identifier)
        except UnparseableIdentifier as e:
            raise IdentifierUnavailable(
                f"provider returned identifier {identifier!r} which does not "
                f"match the {self.kind.name} layout: {e.message}",
                target=identifier,
            ) from e
        return identifier

    def _deadline(self, verb: str) -> Deadline:
        return Deadline(self.deps.timeouts.for_verb(verb))

    def _locator_for(
        self, desired: DesiredConfiguration
    ) -> Tuple[ResourceLocator, str]:
        try:
            locator = self.kind.locator_for(desired)
            return locator, encode(locator)
        except KeyError as e:
            raise MalformedLocator(
                f"scope field {e.args[0]!r} is required for {self.kind.name}",
                verb="create",
                target=desired.name,
            ) from e
        except MalformedLocator as e:
            raise e.bind("create", desired.name)

    def _mutation(
        self,
        kind: MutationKind,
        locator: ResourceLocator,
        payload: Optional[Dict[str, Any]] = None,
    ) -> MutationRequest:
        return MutationRequest(
            kind=kind,
            locator=locator,
            payload=payload or {},
            api_version=self.kind.api_version,
        )

    @staticmethod
    def _require_success(outcome: TerminalOutcome, what: str) -> None:
        if outcome.succeeded:
            return
        if outcome.not_found:
            raise OperationFailed(f"{what} reported the object as not found")
        raise OperationFailed(outcome.cause or f"{what} failed")

    async def _lookup(
        self, locator: ResourceLocator, deadline: Deadline
    ) -> Optional[RemoteRecord]:
        """Get a record, mapping NOT_FOUND to None."""
        try:
            return await run_within(
                deadline,
                self.client.get(locator, deadline, self.kind.api_version),
                f"reading {locator}",
            )
        except RemoteError as e:
            if e.not_found:
                return None
            raise

    async def _observe(
        self,
        identifier: str,
        locator: ResourceLocator,
        record: RemoteRecord,
        deadline: Deadline,
    ) -> Tuple[PersistedState, DesiredConfiguration]:
        """Map a remote record, plus its sub-resources, to state and fields."""
        attributes = {
            key: value
            for key, value in self.kind.map_record(record).items()
            if value is not None
        }

        for sub in self.kind.sub_resources:
            # A missing sub-resource means the attribute is unset
            sub_record = await self._lookup(sub.locator(locator), deadline)
            value = None
            if sub_record is not None:
                value = self.kind.map_sub_record(sub, sub_record)
            if value is None:
                attributes.pop(sub.attribute, None)
            else:
                attributes[sub.attribute] = value

        observed = DesiredConfiguration(
            name=self.kind.record_name(record) or locator.resource_name,
            scope=self.kind.scope_from_locator(locator),
            attributes=dict(attributes),
        )
        state = PersistedState(
            identifier=identifier,
            schema_version=self.kind.schema_version,
            last_known_attributes=dict(attributes),
        )
        return state, observed
