"""
Resolves F1TV URLs into content metadata, playback URLs and parsed manifests.
"""

import logging
from typing import Optional, Protocol

from f1tv_dl.exceptions import InvalidURLError, TokenRejectedError
from f1tv_dl.media.manifest import parse_manifest
from f1tv_dl.models.content import AdditionalStream, ContentMetadata, Manifest
from f1tv_dl.utils.url import parse_f1tv_url

from .auth import TokenManager
from .client import F1TVAPIClient

log = logging.getLogger(__name__)


class ContentResolver(Protocol):
    """What the queue and the plan builder need from the remote service."""

    async def get_content_info(self, url: str) -> ContentMetadata: ...

    async def get_stream_url(
        self, content: ContentMetadata, channel_id: Optional[str] = None
    ) -> str: ...

    async def get_manifest(self, stream_url: str) -> Manifest: ...


class F1TVContentResolver:
    """ContentResolver backed by the F1TV web API."""

    def __init__(self, api_client: F1TVAPIClient, token_manager: TokenManager):
        self._api_client = api_client
        self._token_manager = token_manager

    async def get_content_info(self, url: str) -> ContentMetadata:
        params = parse_f1tv_url(url)
        if params is None:
            raise InvalidURLError(f"Invalid F1TV URL: {url}")

        container = await self._api_client.get_content(params.id)
        metadata = container.get("metadata") or {}
        streams = metadata.get("additionalStreams")
        return ContentMetadata(
            id=str(container.get("id", params.id)),
            name=params.name,
            title=metadata.get("title", ""),
            content_subtype=metadata.get("contentSubtype", ""),
            additional_streams=(
                [AdditionalStream.from_api(s) for s in streams]
                if streams is not None
                else None
            ),
        )

    async def get_stream_url(
        self, content: ContentMetadata, channel_id: Optional[str] = None
    ) -> str:
        credential = await self._token_manager.get_valid_token()
        try:
            return await self._api_client.get_stream_url(
                content.id, credential.value, channel_id
            )
        except TokenRejectedError:
            # The next attempt must not reuse this token.
            self._token_manager.invalidate()
            raise

    async def get_manifest(self, stream_url: str) -> Manifest:
        text = await self._api_client.get_manifest(stream_url)
        return parse_manifest(text, stream_url)
