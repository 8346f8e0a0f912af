import httpx
import pytest

from conftest import WEBHOOK_URL, WebhookRecorder, unreachable
from errors import ConfigurationError, UpstreamError
from notifier import DiscordNotifier, report_filename

REPORT = "# Community Configuration\n1. line one\n"


@pytest.mark.asyncio
async def test_report_is_uploaded_as_text_file(webhook):
    notifier = DiscordNotifier(transport=webhook.transport)

    delivered = await notifier.send_report(REPORT, "Alpha", url=WEBHOOK_URL, line_count=1)

    assert delivered is True
    assert len(webhook.requests) == 1
    request = webhook.requests[0]
    assert request.method == "POST"
    assert str(request.url) == WEBHOOK_URL
    assert request.headers["content-type"].startswith("multipart/form-data")
    body = request.content
    assert b'name="file"; filename="Alpha_communities.txt"' in body
    assert b"Content-Type: text/plain" in body
    assert REPORT.encode() in body
    assert b'name="content"' in body
    assert b"Community file for **Alpha** (1 communities)" in body


@pytest.mark.asyncio
async def test_configured_url_is_the_fallback(webhook):
    notifier = DiscordNotifier(default_url=WEBHOOK_URL, transport=webhook.transport)

    assert await notifier.send_report(REPORT, "Alpha") is True
    assert str(webhook.requests[0].url) == WEBHOOK_URL


@pytest.mark.asyncio
async def test_submitted_url_wins_over_configured(webhook):
    other = "https://discord.com/api/webhooks/999/other"
    notifier = DiscordNotifier(default_url=WEBHOOK_URL, transport=webhook.transport)

    await notifier.send_report(REPORT, "Alpha", url=other)

    assert str(webhook.requests[0].url) == other


@pytest.mark.asyncio
async def test_no_target_is_a_no_op(webhook):
    notifier = DiscordNotifier(transport=webhook.transport)

    assert await notifier.send_report(REPORT, "Alpha") is False
    assert webhook.requests == []


@pytest.mark.asyncio
async def test_no_target_when_required_is_a_configuration_error(webhook):
    notifier = DiscordNotifier(required=True, transport=webhook.transport)

    with pytest.raises(ConfigurationError):
        await notifier.send_report(REPORT, "Alpha")
    assert webhook.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [301, 400, 404, 429, 500])
async def test_non_success_status_is_an_upstream_error(status_code):
    webhook = WebhookRecorder(status_code=status_code)
    notifier = DiscordNotifier(transport=webhook.transport)

    with pytest.raises(UpstreamError):
        await notifier.send_report(REPORT, "Alpha", url=WEBHOOK_URL)
    assert len(webhook.requests) == 1


@pytest.mark.asyncio
async def test_unreachable_webhook_is_an_upstream_error():
    notifier = DiscordNotifier(transport=httpx.MockTransport(unreachable))

    with pytest.raises(UpstreamError) as exc_info:
        await notifier.send_report(REPORT, "Alpha", url=WEBHOOK_URL)
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


@pytest.mark.parametrize(
    "label, expected",
    [
        ("Alpha", "Alpha_communities.txt"),
        ("My Group!", "My_Group_communities.txt"),
        ("../../etc/passwd", "etc_passwd_communities.txt"),
        ("!!!", "community_communities.txt"),
    ],
)
def test_report_filename(label, expected):
    assert report_filename(label) == expected
