#!/usr/bin/env python3
"""
Tests for broadcasting new messages to every connection of a user.

Run with: pytest tests/test_broadcast.py -v
"""
import os
import sys
import json
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError, EndpointConnectionError

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ.setdefault("AWS_REGION", "ap-south-1")
os.environ.setdefault("AWS_DEFAULT_REGION", "ap-south-1")


def make_deps(*pages):
    from nimble.runtime.deps import Deps

    deps = Deps(region="ap-south-1", ws_endpoint="https://abc123.execute-api.ap-south-1.amazonaws.com/prod")
    deps.connections_table = MagicMock()
    deps.apigw = MagicMock()
    deps.connections_table.scan.side_effect = list(pages) or [{"Items": []}]
    return deps


def client_error(code, status=400):
    return ClientError(
        {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
        "PostToConnection",
    )


class TestBroadcast:

    def test_sends_to_every_connection(self):
        from handlers.broadcast import broadcast_new_message_to_user

        deps = make_deps({"Items": [
            {"connectionId": "c-1", "userId": "u-1"},
            {"connectionId": "c-2", "userId": "u-1"},
        ]})

        stats = broadcast_new_message_to_user("u-1", {"message": "New order", "chat_id": "chat-5"}, deps)

        assert stats == {"connections": 2, "sent": 2, "removed": 0}
        calls = deps.apigw.post_to_connection.call_args_list
        assert [c.kwargs["ConnectionId"] for c in calls] == ["c-1", "c-2"]
        assert json.loads(calls[0].kwargs["Data"]) == {"type": "new_message", "message": "New order", "chat_id": "chat-5"}

        scan_kwargs = deps.connections_table.scan.call_args.kwargs
        assert scan_kwargs["FilterExpression"] == "userId = :userId"
        assert scan_kwargs["ExpressionAttributeValues"] == {":userId": "u-1"}

    def test_scan_is_paginated(self):
        from handlers.broadcast import broadcast_new_message_to_user

        deps = make_deps(
            {"Items": [{"connectionId": "c-1"}], "LastEvaluatedKey": {"connectionId": "c-1"}},
            {"Items": [{"connectionId": "c-2"}]},
        )

        stats = broadcast_new_message_to_user("u-1", {}, deps)

        assert stats["sent"] == 2
        second = deps.connections_table.scan.call_args_list[1].kwargs
        assert second["ExclusiveStartKey"] == {"connectionId": "c-1"}

    def test_stale_connections_removed(self):
        from handlers.broadcast import broadcast_new_message_to_user

        deps = make_deps({"Items": [
            {"connectionId": "c-1"},
            {"connectionId": "c-2"},
            {"connectionId": "c-3"},
        ]})
        deps.apigw.post_to_connection.side_effect = [
            None,
            client_error("GoneException", 410),
            client_error("ForbiddenException", 403),
        ]

        stats = broadcast_new_message_to_user("u-1", {"message": "hi"}, deps)

        assert stats == {"connections": 3, "sent": 1, "removed": 2}
        removed = [c.kwargs["Key"]["connectionId"] for c in deps.connections_table.delete_item.call_args_list]
        assert removed == ["c-2", "c-3"]

    def test_failed_removal_not_counted(self):
        from handlers.broadcast import broadcast_new_message_to_user

        deps = make_deps({"Items": [{"connectionId": "c-1"}]})
        deps.apigw.post_to_connection.side_effect = client_error("GoneException", 410)
        deps.connections_table.delete_item.side_effect = ClientError(
            {"Error": {"Code": "InternalServerError", "Message": "x"}}, "DeleteItem"
        )

        assert broadcast_new_message_to_user("u-1", {}, deps) == {"connections": 1, "sent": 0, "removed": 0}

    def test_scan_failure_sends_nothing(self):
        from handlers.broadcast import broadcast_new_message_to_user

        deps = make_deps()
        deps.connections_table.scan.side_effect = ClientError(
            {"Error": {"Code": "ResourceNotFoundException", "Message": "no table"}}, "Scan"
        )

        assert broadcast_new_message_to_user("u-1", {}, deps) == {"connections": 0, "sent": 0, "removed": 0}
        deps.apigw.post_to_connection.assert_not_called()

    def test_unreachable_endpoint_removes_connection(self):
        from handlers.broadcast import broadcast_new_message_to_user

        deps = make_deps({"Items": [{"connectionId": "c-1"}, {"connectionId": "c-2"}]})
        deps.apigw.post_to_connection.side_effect = [
            EndpointConnectionError(endpoint_url="https://abc123.execute-api.ap-south-1.amazonaws.com/prod"),
            None,
        ]

        stats = broadcast_new_message_to_user("u-1", {"message": "hi"}, deps)

        assert stats == {"connections": 2, "sent": 1, "removed": 1}
        deps.connections_table.delete_item.assert_called_once_with(Key={"connectionId": "c-1"})

    def test_scan_endpoint_unreachable_sends_nothing(self):
        from handlers.broadcast import broadcast_new_message_to_user

        deps = make_deps()
        deps.connections_table.scan.side_effect = EndpointConnectionError(endpoint_url="https://dynamodb.ap-south-1.amazonaws.com")

        assert broadcast_new_message_to_user("u-1", {}, deps) == {"connections": 0, "sent": 0, "removed": 0}
        deps.apigw.post_to_connection.assert_not_called()

    def test_is_gone(self):
        from handlers.push import is_gone

        assert is_gone(client_error("GoneException", 410))
        assert is_gone(client_error("Whatever", 410))
        assert not is_gone(client_error("ForbiddenException", 403))

        assert not is_gone(EndpointConnectionError(endpoint_url="https://abc123.execute-api.ap-south-1.amazonaws.com/prod"))


class TestDirectInvoke:

    def invoke(self, event, deps):
        from nimble.app.websocket_handler import websocket_handler

        with patch("nimble.app.websocket_handler.create_deps", return_value=deps):
            response = websocket_handler(event, None)
        return response["statusCode"], json.loads(response["body"])

    def test_broadcast_action(self):
        deps = make_deps({"Items": [{"connectionId": "c-1"}]})

        status, body = self.invoke({"action": "broadcast", "user_id": "u-1", "message_data": {"message": "hi"}}, deps)

        assert status == 200
        assert body == {"message": "Broadcast completed", "connections": 1, "sent": 1, "removed": 0}

    def test_broadcast_requires_user(self):
        deps = make_deps()

        status, body = self.invoke({"action": "broadcast", "message_data": {}}, deps)

        assert status == 400
        assert body["error"] == "Missing required fields: user_id"
        deps.connections_table.scan.assert_not_called()

    def test_unknown_direct_action(self):
        status, body = self.invoke({"action": "reboot"}, make_deps())

        assert status == 400
        assert body["error"] == "Unknown action: reboot"
