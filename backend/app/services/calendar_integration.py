"""Google Calendar and Microsoft Graph (Outlook) REST integration."""

import logging
from typing import Optional
from urllib.parse import urlencode

import requests
from fastapi import HTTPException, status

from backend.app.core.settings import get_settings
from backend.app.models.calendar_event import CalendarEvent

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/primary/events"
GOOGLE_SCOPE = "https://www.googleapis.com/auth/calendar"

OUTLOOK_AUTH_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/authorize"
OUTLOOK_TOKEN_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/token"
OUTLOOK_EVENTS_URL = "https://graph.microsoft.com/v1.0/me/events"
OUTLOOK_SCOPE = "Calendars.ReadWrite offline_access"

REQUEST_TIMEOUT = 15


def _not_configured(provider: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"{provider} Calendar integration is not configured",
    )


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    error = body.get("error")
    if isinstance(error, dict):
        return error.get("message") or str(error)
    return body.get("error_description") or str(error or body)


class CalendarIntegrationService:
    def __init__(self, settings=None, session: Optional[requests.Session] = None):
        self.settings = settings or get_settings()
        self.http = session or requests.Session()

    # -- Google ----------------------------------------------------------------

    @property
    def google_redirect_uri(self) -> str:
        return f"{self.settings.frontend_url}/calendar/google/callback"

    def google_configured(self) -> bool:
        return bool(self.settings.google_client_id and self.settings.google_client_secret)

    def google_auth_url(self) -> str:
        if not self.google_configured():
            raise _not_configured("Google")
        params = {
            "client_id": self.settings.google_client_id,
            "redirect_uri": self.google_redirect_uri,
            "response_type": "code",
            "scope": GOOGLE_SCOPE,
            "access_type": "offline",
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    def google_tokens(self, code: str) -> dict:
        if not self.google_configured():
            raise _not_configured("Google")
        data = {
            "client_id": self.settings.google_client_id,
            "client_secret": self.settings.google_client_secret,
            "code": code,
            "redirect_uri": self.google_redirect_uri,
            "grant_type": "authorization_code",
        }
        return self._token_exchange("Google", GOOGLE_TOKEN_URL, data)

    def _google_body(self, event: CalendarEvent) -> dict:
        tz = self.settings.calendar_timezone
        return {
            "summary": event.title,
            "description": event.description,
            "location": event.location,
            "start": {"dateTime": event.start_date.isoformat(), "timeZone": tz},
            "end": {"dateTime": event.end_date.isoformat(), "timeZone": tz},
        }

    def sync_to_google(self, event: CalendarEvent, access_token: str) -> str:
        if not self.google_configured():
            raise _not_configured("Google")
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            if event.google_event_id:
                response = self.http.put(
                    f"{GOOGLE_EVENTS_URL}/{event.google_event_id}",
                    json=self._google_body(event),
                    headers=headers,
                    timeout=REQUEST_TIMEOUT,
                )
            else:
                response = self.http.post(GOOGLE_EVENTS_URL, json=self._google_body(event), headers=headers, timeout=REQUEST_TIMEOUT)
            if not response.ok:
                raise RuntimeError(_error_message(response))
            external_id = response.json()["id"]
        except (requests.RequestException, RuntimeError, KeyError, ValueError) as exc:
            logger.error("Error syncing event %s to Google Calendar: %s", event.id, exc)
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to sync to Google Calendar: {exc}") from exc
        logger.info("%s Google Calendar event %s", "Updated" if event.google_event_id else "Created", external_id)
        return external_id

    def delete_from_google(self, google_event_id: str, access_token: str) -> None:
        if not self.google_configured():
            raise _not_configured("Google")
        try:
            response = self.http.delete(
                f"{GOOGLE_EVENTS_URL}/{google_event_id}",
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=REQUEST_TIMEOUT,
            )
            if not response.ok:
                raise RuntimeError(_error_message(response))
        except (requests.RequestException, RuntimeError) as exc:
            logger.error("Error deleting Google Calendar event %s: %s", google_event_id, exc)
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to delete from Google Calendar: {exc}") from exc
        logger.info("Deleted Google Calendar event %s", google_event_id)

    # -- Outlook -------------------------------------------------------------

    @property
    def outlook_redirect_uri(self) -> str:
        return f"{self.settings.frontend_url}/calendar/outlook/callback"

    def outlook_configured(self) -> bool:
        return bool(self.settings.outlook_client_id and self.settings.outlook_client_secret)

    def outlook_auth_url(self) -> str:
        if not self.settings.outlook_client_id:
            raise _not_configured("Outlook")
        params = {
            "client_id": self.settings.outlook_client_id,
            "response_type": "code",
            "redirect_uri": self.outlook_redirect_uri,
            "scope": OUTLOOK_SCOPE,
        }
        return f"{OUTLOOK_AUTH_URL}?{urlencode(params)}"

    def outlook_tokens(self, code: str) -> dict:
        if not self.outlook_configured():
            raise _not_configured("Outlook")
        data = {
            "client_id": self.settings.outlook_client_id,
            "client_secret": self.settings.outlook_client_secret,
            "code": code,
            "redirect_uri": self.outlook_redirect_uri,
            "grant_type": "authorization_code",
        }
        return self._token_exchange("Outlook", OUTLOOK_TOKEN_URL, data)

    def _outlook_body(self, event: CalendarEvent) -> dict:
        tz = self.settings.calendar_timezone
        return {
            "subject": event.title,
            "body": {"contentType": "HTML", "content": event.description or ""},
            "start": {"dateTime": event.start_date.isoformat(), "timeZone": tz},
            "end": {"dateTime": event.end_date.isoformat(), "timeZone": tz},
            "location": {"displayName": event.location or ""},
        }

    def sync_to_outlook(self, event: CalendarEvent, access_token: str) -> str:
        if not self.outlook_configured():
            raise _not_configured("Outlook")
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            if event.outlook_event_id:
                response = self.http.patch(
                    f"{OUTLOOK_EVENTS_URL}/{event.outlook_event_id}",
                    json=self._outlook_body(event),
                    headers=headers,
                    timeout=REQUEST_TIMEOUT,
                )
            else:
                response = self.http.post(OUTLOOK_EVENTS_URL, json=self._outlook_body(event), headers=headers, timeout=REQUEST_TIMEOUT)
            if not response.ok:
                raise RuntimeError(_error_message(response))
            external_id = response.json()["id"]
        except (requests.RequestException, RuntimeError, KeyError, ValueError) as exc:
            logger.error("Error syncing event %s to Outlook Calendar: %s", event.id, exc)
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to sync to Outlook Calendar: {exc}") from exc
        logger.info("%s Outlook Calendar event %s", "Updated" if event.outlook_event_id else "Created", external_id)
        return external_id

    def delete_from_outlook(self, outlook_event_id: str, access_token: str) -> None:
        if not self.outlook_configured():
            raise _not_configured("Outlook")
        try:
            response = self.http.delete(
                f"{OUTLOOK_EVENTS_URL}/{outlook_event_id}",
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=REQUEST_TIMEOUT,
            )
            if not response.ok:
                raise RuntimeError(_error_message(response))
        except (requests.RequestException, RuntimeError) as exc:
            logger.error("Error deleting Outlook Calendar event %s: %s", outlook_event_id, exc)
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to delete from Outlook Calendar: {exc}") from exc
        logger.info("Deleted Outlook Calendar event %s", outlook_event_id)

    # -- shared --------------------------------------------------------------

    def _token_exchange(self, provider: str, url: str, data: dict) -> dict:
        try:
            response = self.http.post(url, data=data, timeout=REQUEST_TIMEOUT)
            if not response.ok:
                raise RuntimeError(_error_message(response))
            return response.json()
        except (requests.RequestException, RuntimeError, ValueError) as exc:
            logger.error("%s token exchange failed: %s", provider, exc)
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to get {provider} tokens: {exc}") from exc


def get_calendar_integration() -> CalendarIntegrationService:
    return CalendarIntegrationService()
