"""Gmail API client implementation.

This module provides a client for reading a user's mailbox with an OAuth
access token obtained elsewhere (see ``auramail.gmail.auth``).

Notes:
    The Google API client is synchronous. This project wraps those calls using
    `asyncio.to_thread` so the rest of the codebase can remain async-friendly.
    Every call is bounded by an outer timeout and retried with exponential
    backoff; authorization failures are never retried.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from auramail.config import Settings
from auramail.exceptions import AuthenticationError, GmailAPIError, ValidationError
from auramail.utils import retry_on_failure

logger = structlog.get_logger()

_MAX_PAGE_SIZE = 500


def _http_status(exc: HttpError) -> int | None:
    status = getattr(exc.resp, "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


class GmailClient:
    """Gmail API client for reading placement mail.

    Args:
        access_token: A currently valid OAuth access token.
        settings: Application settings. If None, uses default settings.
        service: Pre-built Gmail service resource. Built from the token when None.
        sleep: Awaitable sleep used between retries.
    """

    def __init__(
        self,
        access_token: str,
        settings: Settings | None = None,
        *,
        service: Any | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        from auramail.config import get_settings

        if not access_token:
            raise ValidationError("Gmail access token is required")

        self.settings = settings or get_settings()
        self._access_token = access_token
        self._service = service
        self._sleep = sleep or asyncio.sleep
        logger.info("gmail_client_initialized")

    @property
    def service(self) -> Any:
        if self._service is None:
            self._service = self._build_service(self._access_token)
        return self._service

    async def list_messages(
        self,
        query: str | None = None,
        max_results: int | None = None,
    ) -> list[dict[str, Any]]:
        """List message ids matching a Gmail search query.

        Args:
            query: Gmail search query string. Defaults to the configured query.
            max_results: Maximum number of messages to return.

        Returns:
            List of ``{"id": ..., "threadId": ...}`` dictionaries in mailbox order.

        Raises:
            AuthenticationError: If the access token is rejected.
            GmailAPIError: If the request still fails after retries.
        """
        query = query or self.settings.gmail_default_query
        max_results = max_results or self.settings.gmail_max_results
        logger.info("listing_messages", max_results=max_results, query=query)
        return await self._call("list_messages", self._list_messages_sync, max_results, query)

    async def get_message(self, message_id: str, *, format: str = "full") -> dict[str, Any]:
        """Get a specific message by ID.

        Args:
            message_id: The Gmail message ID.
            format: Gmail response format.

        Returns:
            Message data dictionary.

        Raises:
            AuthenticationError: If the access token is rejected.
            GmailAPIError: If the request still fails after retries.
        """
        logger.debug("getting_message", message_id=message_id, format=format)
        return await self._call("get_message", self._get_message_sync, message_id, format)

    async def _call(self, operation: str, func: Callable[..., Any], *args: Any) -> Any:
        @retry_on_failure(
            max_retries=self.settings.max_retries,
            delay=self.settings.retry_delay,
            backoff=2.0,
            no_retry=(AuthenticationError,),
            sleep=self._sleep,
        )
        async def attempt() -> Any:
            try:
                return await asyncio.wait_for(
                    asyncio.to_thread(func, *args),
                    timeout=self.settings.gmail_timeout_seconds,
                )
            except RefreshError as exc:
                raise AuthenticationError(f"Gmail token refresh failed: {exc}") from exc
            except HttpError as exc:
                if _http_status(exc) == 401:
                    raise AuthenticationError("Gmail rejected the access token") from exc
                raise

        try:
            return await attempt()
        except AuthenticationError:
            logger.warning("gmail_reauthorization_required", operation=operation)
            raise
        except Exception as exc:
            logger.error("gmail_call_failed", operation=operation, error=str(exc) or type(exc).__name__)
            raise GmailAPIError(f"Gmail {operation} failed: {exc}") from exc

    def _build_service(self, access_token: str) -> Any:
        # Imported lazily to keep import-time cost low and tests fast.
        from google.oauth2.credentials import Credentials
        from googleapiclient.discovery import build

        creds = Credentials(token=access_token, scopes=[self.settings.gmail_scope])
        # cache_discovery=False prevents writing discovery docs to disk.
        return build("gmail", "v1", credentials=creds, cache_discovery=False)

    def _list_messages_sync(self, max_results: int, query: str | None) -> list[dict[str, Any]]:
        user_id = "me"
        messages: list[dict[str, Any]] = []

        page_token: str | None = None
        while len(messages) < max_results:
            per_page = min(_MAX_PAGE_SIZE, max_results - len(messages))
            request = (
                self.service.users()
                .messages()
                .list(userId=user_id, maxResults=per_page, q=query, pageToken=page_token)
            )
            response = request.execute()
            messages.extend(response.get("messages", []) or [])
            page_token = response.get("nextPageToken")
            if page_token is None:
                break

        return messages[:max_results]

    def _get_message_sync(self, message_id: str, format: str) -> dict[str, Any]:
        user_id = "me"
        request = self.service.users().messages().get(userId=user_id, id=message_id, format=format)
        return request.execute()
