"""
Tests for batch execution of contact operations.

The Graph client is mocked; batch submissions are POST /$batch calls whose
responses are correlated to operations by tracking id.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from orgcontact_sync.api.batch import BATCH_PATH, MAX_BATCH_SIZE, BatchExecutor
from orgcontact_sync.api.graph_api import GraphClient, RemoteAPIError, RunSession
from orgcontact_sync.sync.contact import ContactPayload
from orgcontact_sync.sync.operations import (
    CreateContact,
    DeleteContact,
    OperationKind,
    UpdateContact,
)


def payload(name="Alice Smith", email="alice@example.com"):
    return ContactPayload(
        display_name=name, email=email, categories=("Company Contacts",)
    )


def make_creates(count, user_id="u1"):
    return [
        CreateContact(user_id, payload(f"User {i}", f"user{i}@example.com"))
        for i in range(count)
    ]


def echo_batch(status=201):
    """Batch responder answering every request with ``status``."""

    def respond(method, path, body=None, **kwargs):
        return {
            "responses": [
                {"id": r["id"], "status": status, "body": {"id": f"new-{r['id']}"}}
                for r in body["requests"]
            ]
        }

    return respond


@pytest.fixture
def client():
    client = MagicMock()
    client.session = RunSession(tokens=MagicMock())
    return client


class TestBatchExecutorInit:
    """Tests for executor construction."""

    def test_batch_size_capped(self, client):
        """Test that batch size never exceeds the Graph limit."""
        assert BatchExecutor(client, batch_size=50).batch_size == MAX_BATCH_SIZE
        assert BatchExecutor(client, batch_size=0).batch_size == 1

    def test_empty_operations(self, client):
        """Test that nothing is sent for an empty list."""
        assert BatchExecutor(client).execute_all([]) == []
        client.execute.assert_not_called()


class TestBatchMode:
    """Tests for batched execution."""

    def test_chunks_of_twenty(self, client):
        """Test that 45 operations go out as batches of 20, 20 and 5."""
        client.execute.side_effect = echo_batch()
        operations = make_creates(45)

        results = BatchExecutor(client).execute_all(operations)

        calls = client.execute.call_args_list
        sizes = [len(c.kwargs["body"]["requests"]) for c in calls]
        assert sizes == [20, 20, 5]
        assert all(c.args == ("POST", BATCH_PATH) for c in calls)
        assert len(results) == 45
        assert all(r.success for r in results)
        assert [r.operation for r in results] == operations

    def test_request_shape(self, client):
        """Test the JSON batch entries for create, update and delete."""
        client.execute.side_effect = echo_batch(200)
        create = CreateContact("u1", payload(), folder_id="f1")
        update = UpdateContact("u1", "c1", payload())
        delete = DeleteContact("u1", "c2", label="Old Contact")

        BatchExecutor(client).execute_all([create, update, delete])

        entries = client.execute.call_args.kwargs["body"]["requests"]
        assert entries[0]["id"] == create.tracking_id
        assert entries[0]["method"] == "POST"
        assert entries[0]["url"] == "/users/u1/contactFolders/f1/contacts"
        assert entries[0]["headers"] == {"Content-Type": "application/json"}
        assert entries[1]["method"] == "PATCH"
        assert entries[1]["url"] == "/users/u1/contacts/c1"
        assert entries[2] == {
            "id": delete.tracking_id,
            "method": "DELETE",
            "url": "/users/u1/contacts/c2",
        }

    def test_responses_correlated_by_id(self, client):
        """Test that out-of-order responses map back to their operations."""
        ops = make_creates(2)
        client.execute.return_value = {
            "responses": [
                {"id": ops[1].tracking_id, "status": 400,
                 "body": {"error": {"message": "Invalid phone"}}},
                {"id": ops[0].tracking_id, "status": 201, "body": {"id": "c-new"}},
            ]
        }

        results = BatchExecutor(client).execute_all(ops)

        assert results[0].success is True
        assert results[0].response == {"id": "c-new"}
        assert results[1].success is False
        assert results[1].status == 400
        assert results[1].error == "HTTP 400: Invalid phone"

    def test_missing_response_is_failure(self, client):
        """Test that an operation absent from the response fails alone."""
        ops = make_creates(2)
        client.execute.return_value = {
            "responses": [{"id": ops[0].tracking_id, "status": 201}]
        }

        results = BatchExecutor(client).execute_all(ops)

        assert results[0].success is True
        assert results[1].success is False
        assert "missing" in results[1].error

    def test_throttled_item_sets_flag(self, client):
        """Test that a 429 inside a batch marks the session throttled."""
        ops = make_creates(1)
        client.execute.return_value = {
            "responses": [{"id": ops[0].tracking_id, "status": 429}]
        }

        results = BatchExecutor(client).execute_all(ops)

        assert results[0].success is False
        assert client.session.throttled is True


class TestSequentialFallback:
    """Tests for the switch to one-by-one execution."""

    @patch("time.sleep")
    def test_refused_batch_disables_batching(self, mock_sleep, client):
        """Test that a refused batch falls back and never batches again."""

        def respond(method, path, body=None, **kwargs):
            if path == BATCH_PATH:
                raise RemoteAPIError(400, "Batching not supported")
            return {"id": "created"}

        client.execute.side_effect = respond
        executor = BatchExecutor(client)

        first = executor.execute_all(make_creates(3))
        assert client.session.batch_supported is False
        assert all(r.success for r in first)

        client.execute.reset_mock()
        executor.execute_all(make_creates(2))
        paths = [c.args[1] for c in client.execute.call_args_list]
        assert BATCH_PATH not in paths
        assert len(paths) == 2

    @patch("time.sleep")
    def test_fallback_mid_run_keeps_completed_chunks(self, mock_sleep, client):
        """Test that chunks already applied are not re-sent after fallback."""
        batch_count = {"n": 0}

        def respond(method, path, body=None, **kwargs):
            if path == BATCH_PATH:
                batch_count["n"] += 1
                if batch_count["n"] == 2:
                    raise RemoteAPIError(None, "connection reset")
                return echo_batch()(method, path, body=body)
            return {"id": "created"}

        client.execute.side_effect = respond
        operations = make_creates(25)

        results = BatchExecutor(client).execute_all(operations)

        calls = client.execute.call_args_list
        sequential = [c for c in calls if c.args[1] != BATCH_PATH]
        assert len(sequential) == 5
        assert [r.operation for r in results] == operations

    def test_malformed_batch_response_falls_back(self, client):
        """Test that a response without 'responses' is treated as refusal."""

        def respond(method, path, body=None, **kwargs):
            if path == BATCH_PATH:
                return {"unexpected": True}
            return None

        client.execute.side_effect = respond

        results = BatchExecutor(client, operation_delay=0).execute_all(
            [DeleteContact("u1", "c1")]
        )

        assert client.session.batch_supported is False
        assert results[0].success is True

    @patch("time.sleep")
    def test_sequential_pacing(self, mock_sleep, client):
        """Test the pacing delay between, but not after, operations."""
        client.session.disable_batching()
        client.execute.return_value = None

        BatchExecutor(client, operation_delay=0.2).execute_all(make_creates(3))

        assert mock_sleep.call_count == 2
        mock_sleep.assert_called_with(0.2)

    @patch("time.sleep")
    def test_sequential_failure_does_not_stop_others(self, mock_sleep, client):
        """Test that one failing operation is reported and the rest continue."""
        client.session.disable_batching()
        client.execute.side_effect = [
            {"id": "a"},
            RemoteAPIError(409, "Conflict"),
            {"id": "c"},
        ]

        results = BatchExecutor(client).execute_all(make_creates(3))

        assert [r.success for r in results] == [True, False, True]
        assert results[1].status == 409
        assert "Conflict" in results[1].error
        assert results[1].kind is OperationKind.CREATE

    @patch("time.sleep")
    def test_transport_error_captured_per_operation(self, mock_sleep):
        """Test that a broken response body fails only its own operation."""
        tokens = MagicMock()
        tokens.get_token.return_value = "token-1"
        session = RunSession(tokens=tokens, batch_supported=False)
        http = MagicMock()
        no_content = requests.Response()
        no_content.status_code = 204
        no_content._content = b""
        http.request.side_effect = [
            requests.exceptions.ChunkedEncodingError("broken"),
            no_content,
        ]
        client = GraphClient(session, http=http)

        results = BatchExecutor(client).execute_all(
            [DeleteContact("u1", "c1"), DeleteContact("u1", "c2")]
        )

        assert [r.success for r in results] == [False, True]
        assert results[0].status is None
        assert "broken" in results[0].error
