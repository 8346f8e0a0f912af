import logging
import re
from typing import Optional
from urllib.parse import urlsplit

import httpx

from errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)


def report_filename(label: str) -> str:
    """File name for an uploaded report, derived from the submission label."""
    stem = re.sub(r"[^A-Za-z0-9_-]+", "_", label).strip("_") or "community"
    return f"{stem}_communities.txt"


def _host(url: str) -> str:
    return urlsplit(url).hostname or "<unknown host>"


class DiscordNotifier:
    """
    Posts a generated report to a Discord-style webhook as a text file attachment.

    The target is the URL given with the submission, falling back to
    ``default_url`` from configuration. With no target at all the call is a
    no-op, unless ``required`` is set, in which case it is a configuration error.

    One attempt per report: no retries, and the timeout is httpx's default.
    """

    def __init__(
        self,
        default_url: Optional[str] = None,
        required: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.default_url = default_url
        self.required = required
        self._transport = transport

    def resolve_target(self, url: Optional[str] = None) -> Optional[str]:
        target = url or self.default_url
        if not target and self.required:
            raise ConfigurationError("DISCORD_WEBHOOK_URL is not set")
        return target

    async def send_report(
        self,
        content: str,
        label: str,
        url: Optional[str] = None,
        line_count: Optional[int] = None,
    ) -> bool:
        """
        Upload ``content`` to the webhook.

        Returns False when there was nothing to send to, True once the webhook
        accepted the upload. Raises UpstreamError on a transport failure or a
        non-2xx answer.
        """
        target = self.resolve_target(url)
        if not target:
            return False

        caption = f"Community file for **{label}**"
        if line_count is not None:
            caption += f" ({line_count} communities)"
        files = {"file": (report_filename(label), content.encode("utf-8"), "text/plain")}

        async with httpx.AsyncClient(transport=self._transport) as client:
            try:
                response = await client.post(target, data={"content": caption}, files=files)
            except httpx.HTTPError as exc:
                logger.error("Webhook request to %s failed: %s", _host(target), exc)
                raise UpstreamError("Webhook unreachable") from exc

        if not response.is_success:
            logger.error(
                "Webhook at %s rejected upload with status %s",
                _host(target),
                response.status_code,
            )
            raise UpstreamError(f"Webhook responded with status {response.status_code}")

        logger.info("Delivered %s to webhook at %s", report_filename(label), _host(target))
        return True
