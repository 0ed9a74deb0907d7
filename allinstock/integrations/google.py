"""REST clients for Gmail and Google Calendar.

Each client is constructed with the OAuth access token it should use; nothing
is read from ambient state. A 401 from Google is raised as
``CredentialsExpiredError`` so callers can clear the stored token.
"""

from __future__ import annotations

import base64
import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Iterable

import requests

from allinstock.errors import CredentialsExpiredError, IntegrationError


logger = logging.getLogger(__name__)

GMAIL_API_BASE_URL = "https://gmail.googleapis.com/gmail/v1"
CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"
DEFAULT_TIMEOUT = 15
DEFAULT_BODY_LIMIT = 1000

_ANGLE_EMAIL = re.compile(r"<(.+?)>")
_DISPLAY_NAME = re.compile(r"^(.+?)\s*<")


def extract_email(value: str | None) -> str:
    """``"Ana <ana@example.com>"`` -> ``"ana@example.com"``."""

    if not value:
        return ""
    match = _ANGLE_EMAIL.search(value)
    return match.group(1) if match else value


def extract_name(value: str | None) -> str:
    if not value:
        return ""
    match = _DISPLAY_NAME.search(value)
    return match.group(1).replace('"', "") if match else ""


def parse_email_list(value: str | None) -> list[str]:
    if not value:
        return []
    addresses = (extract_email(part.strip()) for part in value.split(","))
    return [address for address in addresses if address]


def parse_calendar_event(event: dict[str, Any]) -> dict[str, Any]:
    start = event.get("start") or {}
    end = event.get("end") or {}
    return {
        "id": event.get("id"),
        "googleEventId": event.get("id"),
        "summary": event.get("summary") or "(No title)",
        "description": event.get("description") or "",
        "location": event.get("location") or "",
        "start": start.get("dateTime") or start.get("date"),
        "end": end.get("dateTime") or end.get("date"),
        "attendees": [a.get("email") for a in event.get("attendees") or [] if a.get("email")],
        "htmlLink": event.get("htmlLink"),
        "status": event.get("status"),
        "created": event.get("created"),
        "updated": event.get("updated"),
        "isAllDay": not start.get("dateTime"),
    }


def _decode_body(data: str | None) -> str:
    if not data:
        return ""
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8", errors="replace")


def _header_date(value: str) -> str | None:
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat()


def parse_gmail_message(message: dict[str, Any], body_limit: int = DEFAULT_BODY_LIMIT) -> dict[str, Any]:
    payload = message.get("payload") or {}
    headers = {
        (header.get("name") or "").lower(): header.get("value") or ""
        for header in payload.get("headers") or []
    }
    parts = payload.get("parts") or []

    body = _decode_body((payload.get("body") or {}).get("data"))
    if not body:
        text_part = next((part for part in parts if part.get("mimeType") == "text/plain"), None)
        if text_part is not None:
            body = _decode_body((text_part.get("body") or {}).get("data"))

    sender = headers.get("from", "")
    return {
        "messageId": message.get("id"),
        "threadId": message.get("threadId"),
        "subject": headers.get("subject", ""),
        "from": extract_email(sender),
        "fromName": extract_name(sender),
        "to": parse_email_list(headers.get("to")),
        "cc": parse_email_list(headers.get("cc")),
        "date": _header_date(headers.get("date", "")),
        "body": body[:body_limit],
        "snippet": message.get("snippet") or "",
        "labels": message.get("labelIds") or [],
        "hasAttachments": any(part.get("filename") for part in parts),
    }


class GoogleApiClient:
    base_url = ""

    def __init__(
        self,
        access_token: str,
        session: requests.Session | None = None,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        if not access_token:
            raise CredentialsExpiredError("Not authorized. Please connect the account first.")
        self.access_token = access_token
        self.session = session or requests.Session()
        if base_url:
            self.base_url = base_url
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        url = f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        headers = {"Authorization": f"Bearer {self.access_token}"}
        try:
            response = self.session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as exc:
            logger.warning("Google API %s %s failed: %s", method, path, exc)
            raise IntegrationError(f"Google API request failed: {exc}") from exc

        if response.status_code == 401:
            logger.info("Google API token rejected for %s %s", method, path)
            raise CredentialsExpiredError("Google access token expired. Please reconnect.")
        if response.status_code >= 400:
            logger.warning(
                "Google API %s %s returned %s", method, path, response.status_code
            )
            raise IntegrationError(
                f"Google API returned HTTP {response.status_code}.",
                status=response.status_code,
            )
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()


class GmailClient(GoogleApiClient):
    base_url = GMAIL_API_BASE_URL

    def __init__(self, access_token: str, body_limit: int = DEFAULT_BODY_LIMIT, **kwargs) -> None:
        super().__init__(access_token, **kwargs)
        self.body_limit = body_limit

    def get_profile(self) -> dict[str, Any]:
        profile = self._request("GET", "users/me/profile")
        email = profile.get("emailAddress") or ""
        return {"email": email, "name": email.split("@")[0]}

    def get_message(self, message_id: str) -> dict[str, Any]:
        message = self._request(
            "GET", f"users/me/messages/{message_id}", params={"format": "full"}
        )
        return parse_gmail_message(message, self.body_limit)

    def fetch_messages(
        self, max_results: int = 100, page_token: str | None = None
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"maxResults": max_results}
        if page_token:
            params["pageToken"] = page_token
        listing = self._request("GET", "users/me/messages", params=params)

        emails = []
        for item in listing.get("messages") or []:
            try:
                emails.append(self.get_message(item["id"]))
            except CredentialsExpiredError:
                raise
            except IntegrationError:
                logger.warning("Skipping Gmail message %s", item.get("id"))
        return {"emails": emails, "nextPageToken": listing.get("nextPageToken")}

    def send_message(
        self,
        to: str,
        subject: str,
        body: str,
        cc: Iterable[str] = (),
        bcc: Iterable[str] = (),
    ) -> dict[str, Any]:
        cc = list(cc)
        bcc = list(bcc)
        lines = [f"To: {to}"]
        if cc:
            lines.append(f"Cc: {', '.join(cc)}")
        if bcc:
            lines.append(f"Bcc: {', '.join(bcc)}")
        lines.extend([f"Subject: {subject}", "", body])
        raw = base64.urlsafe_b64encode("\r\n".join(lines).encode("utf-8")).decode("ascii")
        return self._request("POST", "users/me/messages/send", json={"raw": raw.rstrip("=")})


def _month_bounds(now: datetime) -> tuple[str, str]:
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        next_month = start.replace(year=start.year + 1, month=1)
    else:
        next_month = start.replace(month=start.month + 1)
    return start.isoformat(), next_month.isoformat()


class CalendarClient(GoogleApiClient):
    base_url = CALENDAR_API_BASE_URL
    calendar_id = "primary"

    def get_profile(self) -> dict[str, Any]:
        listing = self._request("GET", "users/me/calendarList", params={"maxResults": 1})
        items = listing.get("items") or []
        primary = next((item for item in items if item.get("primary")), items[0] if items else {})
        return {
            "email": primary.get("id") or "unknown",
            "name": primary.get("summary") or "Calendar User",
        }

    def fetch_events(
        self,
        time_min: str | None = None,
        time_max: str | None = None,
        max_results: int = 250,
    ) -> list[dict[str, Any]]:
        if time_min is None or time_max is None:
            default_min, default_max = _month_bounds(datetime.now(timezone.utc))
            time_min = time_min or default_min
            time_max = time_max or default_max
        listing = self._request(
            "GET",
            f"calendars/{self.calendar_id}/events",
            params={
                "timeMin": time_min,
                "timeMax": time_max,
                "maxResults": max_results,
                "singleEvents": "true",
                "orderBy": "startTime",
            },
        )
        return [parse_calendar_event(event) for event in listing.get("items") or []]

    @staticmethod
    def _event_body(event: dict[str, Any]) -> dict[str, Any]:
        if event.get("isAllDay"):
            start = {"date": event.get("start")}
            end = {"date": event.get("end")}
        else:
            start = {"dateTime": event.get("start"), "timeZone": "UTC"}
            end = {"dateTime": event.get("end"), "timeZone": "UTC"}
        return {
            "summary": event.get("summary"),
            "description": event.get("description"),
            "location": event.get("location"),
            "start": start,
            "end": end,
            "attendees": [{"email": email} for email in event.get("attendees") or []],
        }

    def create_event(self, event: dict[str, Any]) -> dict[str, Any]:
        body = self._event_body(event)
        body["reminders"] = {
            "useDefault": False,
            "overrides": [
                {"method": "email", "minutes": 24 * 60},
                {"method": "popup", "minutes": 30},
            ],
        }
        created = self._request("POST", f"calendars/{self.calendar_id}/events", json=body)
        return parse_calendar_event(created)

    def update_event(self, event_id: str, event: dict[str, Any]) -> dict[str, Any]:
        updated = self._request(
            "PUT",
            f"calendars/{self.calendar_id}/events/{event_id}",
            json=self._event_body(event),
        )
        return parse_calendar_event(updated)

    def delete_event(self, event_id: str) -> dict[str, Any]:
        self._request("DELETE", f"calendars/{self.calendar_id}/events/{event_id}")
        return {"success": True}


def client_options(config, service: str) -> dict[str, Any]:
    """Keyword arguments for a Gmail or Calendar client built from app config."""

    if service == "gmail":
        options: dict[str, Any] = {
            "base_url": config.get("GMAIL_API_BASE_URL") or GMAIL_API_BASE_URL,
            "body_limit": int(config.get("EMAIL_BODY_LIMIT") or DEFAULT_BODY_LIMIT),
        }
    else:
        options = {"base_url": config.get("CALENDAR_API_BASE_URL") or CALENDAR_API_BASE_URL}
    options["timeout"] = float(config.get("GOOGLE_API_TIMEOUT") or DEFAULT_TIMEOUT)
    return options
