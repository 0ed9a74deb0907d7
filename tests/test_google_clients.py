import base64
import json
import os
import sys

import pytest
import requests

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from allinstock.errors import CredentialsExpiredError, IntegrationError
from allinstock.integrations.google import (
    CalendarClient,
    GmailClient,
    extract_email,
    extract_name,
    parse_calendar_event,
    parse_email_list,
)


def _response(status_code=200, payload=None):
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(payload).encode("utf-8") if payload is not None else b""
    return response


class FakeSession:
    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        for (route_method, suffix), result in self.routes.items():
            if route_method == method and url.endswith(suffix):
                if isinstance(result, Exception):
                    raise result
                return _response(*result)
        return _response(404, {"error": "not found"})


def _b64(text):
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def test_address_helpers():
    assert extract_email('"Ana Silva" <ana@example.com>') == "ana@example.com"
    assert extract_email("bob@example.com") == "bob@example.com"
    assert extract_name('"Ana Silva" <ana@example.com>') == "Ana Silva"
    assert extract_name("bob@example.com") == ""
    assert parse_email_list("Ana <ana@example.com>, bob@example.com, ") == [
        "ana@example.com",
        "bob@example.com",
    ]
    assert parse_email_list(None) == []


def test_parse_calendar_event_all_day_and_timed():
    all_day = parse_calendar_event({"id": "e1", "start": {"date": "2024-06-01"}})
    timed = parse_calendar_event(
        {
            "id": "e2",
            "summary": "Delivery",
            "start": {"dateTime": "2024-06-01T09:00:00Z"},
            "end": {"dateTime": "2024-06-01T10:00:00Z"},
            "attendees": [{"email": "a@example.com"}],
        }
    )

    assert all_day["summary"] == "(No title)"
    assert all_day["isAllDay"] is True
    assert timed["isAllDay"] is False
    assert timed["googleEventId"] == "e2"
    assert timed["attendees"] == ["a@example.com"]


def test_client_requires_token():
    with pytest.raises(CredentialsExpiredError):
        GmailClient("", session=FakeSession({}))


def test_fetch_messages_parses_headers_and_body():
    message = {
        "id": "m1",
        "threadId": "t1",
        "snippet": "Hello",
        "labelIds": ["INBOX"],
        "payload": {
            "headers": [
                {"name": "Subject", "value": "Order"},
                {"name": "From", "value": "Ana <ana@example.com>"},
                {"name": "To", "value": "ops@acme.pt, Rui <rui@acme.pt>"},
                {"name": "Date", "value": "Mon, 10 Jun 2024 09:30:00 +0100"},
            ],
            "body": {},
            "parts": [
                {"mimeType": "text/plain", "body": {"data": _b64("x" * 50)}},
                {"mimeType": "application/pdf", "filename": "quote.pdf", "body": {}},
            ],
        },
    }
    session = FakeSession(
        {
            ("GET", "users/me/messages"): (200, {"messages": [{"id": "m1"}], "nextPageToken": "n2"}),
            ("GET", "users/me/messages/m1"): (200, message),
        }
    )
    client = GmailClient("token", session=session, body_limit=10)

    result = client.fetch_messages(max_results=5)

    assert result["nextPageToken"] == "n2"
    email = result["emails"][0]
    assert email["messageId"] == "m1"
    assert email["from"] == "ana@example.com"
    assert email["fromName"] == "Ana"
    assert email["to"] == ["ops@acme.pt", "rui@acme.pt"]
    assert email["date"] == "2024-06-10T08:30:00+00:00"
    assert email["body"] == "x" * 10
    assert email["hasAttachments"] is True
    method, url, kwargs = session.calls[0]
    assert kwargs["headers"]["Authorization"] == "Bearer token"
    assert kwargs["params"] == {"maxResults": 5}


def test_unauthorized_response_raises_credentials_expired():
    session = FakeSession({("GET", "users/me/messages"): (401, {"error": "expired"})})
    client = GmailClient("token", session=session)

    with pytest.raises(CredentialsExpiredError):
        client.fetch_messages()


def test_other_http_errors_raise_integration_error():
    session = FakeSession({("GET", "users/me/profile"): (500, {"error": "boom"})})
    client = GmailClient("token", session=session)

    with pytest.raises(IntegrationError) as excinfo:
        client.get_profile()

    assert excinfo.value.status == 500
    assert not isinstance(excinfo.value, CredentialsExpiredError)


def test_transport_errors_raise_integration_error():
    session = FakeSession(
        {("GET", "users/me/profile"): requests.ConnectionError("network down")}
    )
    client = GmailClient("token", session=session)

    with pytest.raises(IntegrationError):
        client.get_profile()


def test_send_message_encodes_raw_email():
    session = FakeSession({("POST", "users/me/messages/send"): (200, {"id": "sent-1"})})
    client = GmailClient("token", session=session)

    result = client.send_message("ana@example.com", "Hi", "Body", cc=["rui@acme.pt"])

    assert result == {"id": "sent-1"}
    raw = session.calls[0][2]["json"]["raw"]
    decoded = base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4)).decode("utf-8")
    assert decoded == "To: ana@example.com\r\nCc: rui@acme.pt\r\nSubject: Hi\r\n\r\nBody"


def test_calendar_create_update_delete():
    created_event = {
        "id": "g1",
        "summary": "Visit",
        "start": {"dateTime": "2024-06-01T09:00:00Z"},
        "end": {"dateTime": "2024-06-01T10:00:00Z"},
    }
    session = FakeSession(
        {
            ("POST", "calendars/primary/events"): (200, created_event),
            ("PUT", "calendars/primary/events/g1"): (200, created_event),
            ("DELETE", "calendars/primary/events/g1"): (204, None),
        }
    )
    client = CalendarClient("token", session=session)
    event = {
        "summary": "Visit",
        "start": "2024-06-01T09:00:00Z",
        "end": "2024-06-01T10:00:00Z",
        "attendees": ["a@example.com"],
    }

    assert client.create_event(event)["googleEventId"] == "g1"
    body = session.calls[0][2]["json"]
    assert body["start"] == {"dateTime": "2024-06-01T09:00:00Z", "timeZone": "UTC"}
    assert body["attendees"] == [{"email": "a@example.com"}]
    assert body["reminders"]["useDefault"] is False

    assert client.update_event("g1", event)["id"] == "g1"
    assert client.delete_event("g1") == {"success": True}


def test_calendar_all_day_events_use_dates():
    session = FakeSession({("POST", "calendars/primary/events"): (200, {"id": "g2"})})
    client = CalendarClient("token", session=session)

    client.create_event({"summary": "Expiry", "start": "2024-06-01", "end": "2024-06-02", "isAllDay": True})

    body = session.calls[0][2]["json"]
    assert body["start"] == {"date": "2024-06-01"}
    assert body["end"] == {"date": "2024-06-02"}


def test_fetch_events_sends_window():
    session = FakeSession(
        {("GET", "calendars/primary/events"): (200, {"items": [{"id": "e1", "start": {"date": "2024-06-01"}}]})}
    )
    client = CalendarClient("token", session=session)

    events = client.fetch_events("2024-06-01T00:00:00Z", "2024-06-30T23:59:59Z", 1)

    assert [event["id"] for event in events] == ["e1"]
    params = session.calls[0][2]["params"]
    assert params["timeMin"] == "2024-06-01T00:00:00Z"
    assert params["maxResults"] == 1
    assert params["singleEvents"] == "true"
