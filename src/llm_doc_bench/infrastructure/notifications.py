"""
Slack notifications

Posts a run summary (with a CSV preview) or a fatal error to a Slack
incoming webhook. Delivery is best effort: failures are logged, never raised.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from llm_doc_bench.domain.constants import FRACTION_DIGITS
from llm_doc_bench.domain.entities import RunSummary

logger = logging.getLogger(__name__)

# Slack rejects payloads above roughly 30KB
MAX_PAYLOAD_SIZE = 30 * 1024

_CODE_FENCE = "```"


def _score_emoji(score: float) -> str:
    if score >= 0.8:
        return "🟢"
    if score >= 0.6:
        return "🟡"
    return "🔴"


def _mrkdwn(text: str) -> dict:
    return {"type": "mrkdwn", "text": text}


def _section(text: str) -> dict:
    return {"type": "section", "text": _mrkdwn(text)}


def _divider() -> dict:
    return {"type": "divider"}


def csv_preview(csv_content: str, max_bytes: int = MAX_PAYLOAD_SIZE) -> str:
    """
    CSV content as a Slack code block that fits within max_bytes

    Truncation happens on line boundaries and is marked with "... [truncated]".
    """
    header = f"{_CODE_FENCE}\n"
    footer = f"\n{_CODE_FENCE}"
    available = max_bytes - len((header + footer).encode("utf-8"))

    preview = csv_content
    if len(csv_content.encode("utf-8")) > available:
        kept = []
        used = 0
        for line in csv_content.split("\n"):
            size = len(f"{line}\n".encode("utf-8"))
            if used + size > available:
                break
            kept.append(line)
            used += size
        preview = "\n".join(kept).rstrip() + "\n... [truncated]"
    return header + preview + footer


def build_summary_payload(summary: RunSummary, csv_content: str | None = None) -> dict[str, Any]:
    """Block Kit payload for a completed run"""
    now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    total = summary.total or 1
    success_pct = round(summary.successful / total * 100)
    failed_pct = round(summary.failed / total * 100)
    status_emoji = "✅" if summary.failed == 0 else "⚠️"
    status_text = "all tests passing" if summary.failed == 0 else "some failures"

    scores = summary.average_scores
    score_fields = [
        _mrkdwn(
            f"{_score_emoji(scores.get(name, 0.0))} *{label}:*\n"
            f"{scores.get(name, 0.0):.{FRACTION_DIGITS}f}"
        )
        for name, label in (
            ("overall", "Overall"),
            ("accuracy", "Accuracy"),
            ("completeness", "Completeness"),
            ("relevance", "Relevance"),
        )
    ]

    blocks: list[dict] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": f"📊 Test run completed at {now}", "emoji": True},
        },
        _section(f"{status_emoji} *Test run completed with {status_text}*"),
        _divider(),
        {
            "type": "section",
            "fields": [
                _mrkdwn(f"*Total Tests:*\n{summary.total}"),
                _mrkdwn(f"*Run ID:*\n{summary.run_id}"),
                _mrkdwn(f"*Successful:*\n{summary.successful} ({success_pct}%)"),
                _mrkdwn(f"*Failed:*\n{summary.failed} ({failed_pct}%)"),
            ],
        },
        _divider(),
        _section("*Average Scores:*"),
        {"type": "section", "fields": score_fields},
    ]

    if csv_content:
        blocks += [
            _divider(),
            _section("*CSV Results Preview:*"),
            _section(csv_preview(csv_content)),
        ]

    blocks.append({
        "type": "context",
        "elements": [_mrkdwn("📋 Full results available in the results directory")],
    })
    return {"blocks": blocks}


def build_error_payload(context: dict[str, Any], error: BaseException | str | None) -> dict[str, Any]:
    """Block Kit payload for a failed run"""
    now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    if error is None:
        message = "No error provided"
    else:
        message = str(error) or type(error).__name__
    details = {
        "error": {"type": type(error).__name__, "message": message}
        if isinstance(error, BaseException) else {"message": message},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    return {
        "blocks": [
            {
                "type": "header",
                # Slack caps header text at 150 characters
                "text": {"type": "plain_text", "text": f"❌ Test run failed at {now} - {message}"[:150], "emoji": True},
            },
            _section(f"*Error:* {message}"),
            _divider(),
            {
                "type": "section",
                "fields": [
                    _mrkdwn(f"*Status:*\n`{context.get('status', 'failed')}`"),
                    _mrkdwn(f"*Task:*\n`{context.get('task_type', 'test_execution')}`"),
                    _mrkdwn(f"*Models:*\n`{context.get('models') or 'N/A'}`"),
                    _mrkdwn(f"*Error Type:*\n`{context.get('error_type', 'unknown')}`"),
                    _mrkdwn(f"*Time:*\n`{now}`"),
                ],
            },
            _divider(),
            _section("*Error Details:*"),
            _section(f"{_CODE_FENCE}\n{json.dumps(details, indent=2, ensure_ascii=False)}\n{_CODE_FENCE}"),
            {"type": "context", "elements": [_mrkdwn("🔍 Check logs for more details")]},
        ]
    }


class SlackNotifier:
    """Slack incoming-webhook client; disabled when no URL is configured"""

    def __init__(self, webhook_url: str | None, timeout: float = 10.0) -> None:
        self.webhook_url = webhook_url
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def _post(self, payload: dict, description: str) -> bool:
        if not self.enabled:
            logger.debug("Slack webhook URL not configured; skipping %s", description)
            return False
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.webhook_url, json=payload)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("Failed to send %s to Slack: HTTP %d", description, e.response.status_code)
            return False
        except httpx.HTTPError as e:
            logger.error("Error sending %s to Slack: %s", description, e)
            return False
        logger.info("Sent %s to Slack", description)
        return True

    async def send_run_summary(self, summary: RunSummary, csv_content: str | None = None) -> bool:
        """Post the run summary; returns whether delivery succeeded"""
        return await self._post(build_summary_payload(summary, csv_content), "test results")

    async def send_error(self, context: dict[str, Any], error: BaseException | str | None) -> bool:
        """Post a fatal run error; returns whether delivery succeeded"""
        return await self._post(build_error_payload(context, error), "error notification")
