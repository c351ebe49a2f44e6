"""
notifications.pyのテスト

ペイロード組み立ては純粋関数として、送信は httpx.AsyncClient をモックして確認する。
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from llm_doc_bench.domain.entities import RunSummary
from llm_doc_bench.infrastructure.notifications import (
    SlackNotifier,
    build_error_payload,
    build_summary_payload,
    csv_preview,
)

MODULE = "llm_doc_bench.infrastructure.notifications"


def _summary(failed=0):
    return RunSummary(
        run_id="20260101_120000",
        total=10,
        successful=10 - failed,
        failed=failed,
        average_scores={"overall": 0.85, "accuracy": 0.7, "completeness": 0.9, "relevance": 0.5},
    )


def _texts(payload):
    texts = []
    for block in payload["blocks"]:
        if "text" in block:
            texts.append(block["text"]["text"])
        for field in block.get("fields", []) + block.get("elements", []):
            texts.append(field["text"])
    return "\n".join(texts)


class TestCsvPreview:

    def test_small_content_is_wrapped(self):
        assert csv_preview("a,b\n1,2") == "```\na,b\n1,2\n```"

    def test_truncates_on_line_boundary(self):
        """上限を超える場合は行単位で切り詰める"""
        content = "\n".join(f"row{i},value" for i in range(100))

        preview = csv_preview(content, max_bytes=100)

        assert len(preview.encode("utf-8")) <= 100 + len("\n... [truncated]")
        assert preview.endswith("... [truncated]\n```")
        body = preview[len("```\n"):-len("\n```")]
        for line in body.split("\n")[:-1]:
            assert line.startswith("row") and line.endswith(",value")


class TestBuildSummaryPayload:

    def test_all_passing(self):
        text = _texts(build_summary_payload(_summary()))
        assert "all tests passing" in text
        assert "*Successful:*\n10 (100%)" in text
        assert "🟢 *Overall:*\n0.8500" in text
        assert "🟡 *Accuracy:*\n0.7000" in text
        assert "🔴 *Relevance:*\n0.5000" in text

    def test_with_failures(self):
        text = _texts(build_summary_payload(_summary(failed=3)))
        assert "some failures" in text
        assert "*Failed:*\n3 (30%)" in text

    def test_csv_block_only_when_content_given(self):
        without = _texts(build_summary_payload(_summary()))
        with_csv = _texts(build_summary_payload(_summary(), "id,model\n1,m1"))
        assert "CSV Results Preview" not in without
        assert "CSV Results Preview" in with_csv
        assert "id,model" in with_csv

    def test_empty_run_does_not_divide_by_zero(self):
        summary = RunSummary(run_id="r", total=0, successful=0, failed=0)
        build_summary_payload(summary)


class TestBuildErrorPayload:

    def test_contains_context_and_message(self):
        payload = build_error_payload({"models": "m1, m2", "error_type": "CorpusError"}, ValueError("no prompts"))
        text = _texts(payload)
        assert "*Error:* no prompts" in text
        assert "`m1, m2`" in text
        assert "`CorpusError`" in text
        assert '"type": "ValueError"' in text

    def test_missing_error(self):
        assert "No error provided" in _texts(build_error_payload({}, None))

    def test_header_is_capped(self):
        payload = build_error_payload({}, "x" * 500)
        assert len(payload["blocks"][0]["text"]["text"]) <= 150


class TestSlackNotifier:
    """SlackNotifier の送信テスト"""

    @pytest.mark.asyncio
    async def test_disabled_without_webhook(self):
        notifier = SlackNotifier(None)
        assert notifier.enabled is False
        with patch(f"{MODULE}.httpx.AsyncClient") as mock_client:
            assert await notifier.send_run_summary(_summary()) is False
        mock_client.assert_not_called()

    @pytest.mark.asyncio
    async def test_posts_payload(self):
        response = MagicMock()
        response.raise_for_status = MagicMock()
        client = MagicMock()
        client.post = AsyncMock(return_value=response)
        with patch(f"{MODULE}.httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__ = AsyncMock(return_value=client)
            mock_client.return_value.__aexit__ = AsyncMock(return_value=False)
            notifier = SlackNotifier("https://hooks.slack.com/services/x", timeout=3.0)

            assert await notifier.send_run_summary(_summary()) is True

        mock_client.assert_called_once_with(timeout=3.0)
        url = client.post.call_args.args[0]
        assert url == "https://hooks.slack.com/services/x"
        assert "blocks" in client.post.call_args.kwargs["json"]

    @pytest.mark.asyncio
    async def test_http_failure_is_swallowed(self, caplog):
        """送信失敗はログに残し例外は投げない"""
        client = MagicMock()
        client.post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch(f"{MODULE}.httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__ = AsyncMock(return_value=client)
            mock_client.return_value.__aexit__ = AsyncMock(return_value=False)
            notifier = SlackNotifier("https://hooks.slack.com/services/x")

            assert await notifier.send_error({}, RuntimeError("boom")) is False

        assert "Error sending error notification to Slack" in caplog.text

    @pytest.mark.asyncio
    async def test_status_failure_is_swallowed(self, caplog):
        request = httpx.Request("POST", "https://hooks.slack.com/services/x")
        response = httpx.Response(404, request=request)
        client = MagicMock()
        client.post = AsyncMock(return_value=response)
        with patch(f"{MODULE}.httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__ = AsyncMock(return_value=client)
            mock_client.return_value.__aexit__ = AsyncMock(return_value=False)
            notifier = SlackNotifier("https://hooks.slack.com/services/x")

            assert await notifier.send_run_summary(_summary()) is False

        assert "HTTP 404" in caplog.text
