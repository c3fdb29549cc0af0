"""Pytest configuration and fixtures."""

from typing import Callable, Dict, Optional

import pytest

from errors import ErrorKind, RemoteError
from identifiers import ResourceLocator, encode
from kinds.base import ResourceKind, ScopeSegment, SubResource
from reconciler import EngineDependencies, Reconciler
from remote import (
    MutationKind,
    MutationRequest,
    OperationHandle,
    OperationState,
    OperationStatus,
    RemoteAPIClient,
    RemoteRecord,
    SyncResult,
)
from state import DesiredConfiguration

THROUGHPUT_SEGMENT = "throughputSettings"


class FakeRemoteClient(RemoteAPIClient):
    """
    In-memory remote API.

    Records are keyed by identifier. Throughput children only exist when
    the parent was created with an initial throughput; updating a missing
    one fails with NOT_FOUND, like the real provider.
    """

    def __init__(self):
        self.records: Dict[str, RemoteRecord] = {}
        self.calls = []
        self.polls = 0

        self.long_running = False  # answer mutations with operation handles
        self.pending_polls = 0  # IN_PROGRESS answers before a terminal one
        self.fail_operation: Optional[str] = None  # cause for FAILED outcome
        self.submit_error: Optional[RemoteError] = None
        self.get_error: Optional[RemoteError] = None
        self.omit_identifier = False
        self.rewrite_identifier: Optional[Callable[[str], str]] = None

    def put_record(self, locator: ResourceLocator, properties: dict) -> RemoteRecord:
        identifier = encode(locator)
        reported = identifier
        if self.rewrite_identifier is not None:
            reported = self.rewrite_identifier(identifier)
        record = RemoteRecord(
            identifier=None if self.omit_identifier else reported,
            properties=properties,
        )
        self.records[identifier] = record
        return record

    async def get(self, locator, deadline=None, api_version=None):
        identifier = encode(locator)
        self.calls.append(("get", identifier))
        if self.get_error is not None:
            raise self.get_error
        record = self.records.get(identifier)
        if record is None:
            raise RemoteError(ErrorKind.NOT_FOUND, f"{identifier} not found", 404)
        return record

    async def submit(self, mutation: MutationRequest, deadline=None):
        identifier = encode(mutation.locator)
        self.calls.append((mutation.kind.value, identifier))
        if self.submit_error is not None:
            raise self.submit_error

        if identifier not in self.records:
            if mutation.kind == MutationKind.DELETE:
                raise RemoteError(ErrorKind.NOT_FOUND, f"{identifier} not found", 404)
            if mutation.kind == MutationKind.UPDATE:
                if mutation.locator.resource_type == THROUGHPUT_SEGMENT:
                    raise RemoteError(
                        ErrorKind.NOT_FOUND,
                        "throughput was not provisioned for this database",
                        404,
                    )
                raise RemoteError(ErrorKind.NOT_FOUND, f"{identifier} not found", 404)

        if self.long_running:
            return OperationHandle(
                mutation=mutation,
                poll_reference=f"operations/{len(self.calls)}",
                metadata={"remaining": self.pending_polls},
            )

        record = self._apply(mutation)
        return SyncResult(record=record)

    async def poll(self, handle: OperationHandle) -> OperationStatus:
        self.polls += 1
        if handle.metadata["remaining"] > 0:
            handle.metadata["remaining"] -= 1
            return OperationStatus(OperationState.IN_PROGRESS)
        if self.fail_operation is not None:
            return OperationStatus(OperationState.FAILED, cause=self.fail_operation)
        self._apply(handle.mutation)
        return OperationStatus(OperationState.SUCCEEDED)

    def _apply(self, mutation: MutationRequest) -> Optional[RemoteRecord]:
        identifier = encode(mutation.locator)

        if mutation.kind == MutationKind.DELETE:
            for key in list(self.records):
                if key == identifier or key.startswith(identifier + "/"):
                    del self.records[key]
            return None

        payload = dict(mutation.payload)
        if mutation.locator.resource_type == THROUGHPUT_SEGMENT:
            return self.put_record(mutation.locator, payload)

        record = self.put_record(
            mutation.locator, {"name": mutation.locator.resource_name, **payload}
        )
        if mutation.kind == MutationKind.CREATE:
            options = payload.get("properties", {}).get("options", {})
            if options.get("throughput") is not None:
                self.put_record(
                    mutation.locator.child(THROUGHPUT_SEGMENT, "default"),
                    {"properties": {"resource": {"throughput": options["throughput"]}}},
                )
        return record

    def mutations(self, kind: str):
        return [identifier for verb, identifier in self.calls if verb == kind]


def upgrade_sample_v0(state):
    state["last_known_attributes"] = state.pop("attributes", {})
    return state


class SampleDatabaseKind(ResourceKind):
    """Database nested under a group and an account, with throughput."""

    schema_version = 1

    @property
    def name(self):
        return "sample_database"

    @property
    def scope_segments(self):
        return (
            ScopeSegment("group", field="group"),
            ScopeSegment("account", field="account"),
        )

    @property
    def resource_segment(self):
        return "databases"

    @property
    def sub_resources(self):
        return (SubResource("throughput", THROUGHPUT_SEGMENT, "default"),)

    @property
    def state_upgraders(self):
        return {0: upgrade_sample_v0}

    def build_payload(self, desired, creating):
        options = {}
        if creating and desired.attributes.get("throughput") is not None:
            options["throughput"] = desired.attributes["throughput"]
        return {
            "label": desired.attributes.get("label"),
            "properties": {"resource": {"id": desired.name}, "options": options},
        }

    def map_record(self, record):
        return {"label": record.properties.get("label")}


@pytest.fixture
def fake_client():
    """In-memory remote API client."""
    return FakeRemoteClient()


@pytest.fixture
def sample_kind():
    return SampleDatabaseKind()


@pytest.fixture
def deps(fake_client):
    """Engine dependencies with fast polling."""
    return EngineDependencies(client=fake_client, poll_interval=0.001)


@pytest.fixture
def reconciler(sample_kind, deps):
    return Reconciler(sample_kind, deps)


@pytest.fixture
def desired_db1():
    """Declaration for db1 in group rg1, account acct1."""
    return DesiredConfiguration(
        name="db1",
        scope={"group": "rg1", "account": "acct1"},
    )
