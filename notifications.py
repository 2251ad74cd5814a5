"""Report delivery for a triaged batch.

This module handles all output for a finished run:
- Console/log summary of the four buckets
- Markdown report saved to disk
- HTML email sent through the Mailjet v3.1 API

Every channel fails gracefully: errors are logged and reported as False,
never raised, so one broken channel does not hide the others.
"""

import asyncio
import base64
import html
import logging
from datetime import date, datetime
from pathlib import Path

import aiohttp

from config import Config
from filters import collect_pdf_candidates
from models.announcement import CategorizedAnnouncement, TriageReport

logger = logging.getLogger(__name__)

MAILJET_SEND_URL = "https://api.mailjet.com/v3.1/send"

# (bucket attribute, heading, show reasoning)
SECTIONS = (
    ("interesting", "✨ {n} Interesting Announcements", True),
    ("uninteresting", "🧐 {n} Uninteresting Announcements", True),
    ("skipped", "🔇 {n} Skipped Announcements", False),
    ("failed", "❌ {n} Failed Announcements", True),
)


def primary_pdf_url(item: CategorizedAnnouncement) -> str:
    """Best link to show for an announcement.

    First attachment labelled as a PDF, else the first PDF candidate
    (title link included), else '#'.
    """
    for att in item.announcement.attachments:
        if ".pdf" in att.text.lower():
            return att.url
    candidates = collect_pdf_candidates(item.announcement)
    if candidates:
        return candidates[0].url
    return "#"


def log_report(report: TriageReport) -> None:
    """Write a human-readable summary of every bucket to the log."""
    logger.info("SCRAPING COMPLETE | %s", " ".join(f"{k}={v}" for k, v in report.counts().items()))

    for attr, heading, with_reasoning in SECTIONS:
        items: list[CategorizedAnnouncement] = getattr(report, attr)
        logger.info(heading.format(n=len(items)))
        for item in items:
            logger.info("  - %s", item.title)
            if with_reasoning:
                logger.info("    reasoning: %s", item.verdict.reasoning)
            if attr == "interesting":
                logger.info("    link: %s", primary_pdf_url(item))


def _render_html_items(items: list[CategorizedAnnouncement], with_reasoning: bool) -> str:
    if not items:
        return "<li>None</li>"
    rows = []
    for item in items:
        reasoning = (
            f"<i>Reasoning: {html.escape(item.verdict.reasoning)}</i><br/>"
            if with_reasoning else ""
        )
        rows.append(
            "<li>"
            f"<b>{html.escape(item.title)}</b> <small>{html.escape(item.announcement.time)}</small><br/>"
            f"{reasoning}"
            f'<a href="{html.escape(primary_pdf_url(item), quote=True)}">Link to PDF</a>'
            "</li>"
        )
    return "\n".join(rows)


def render_email_html(report: TriageReport, day: date) -> str:
    """Render the email body for a report."""
    parts = [f"<h1>IDX Watch Report - {day.isoformat()}</h1>"]
    for attr, heading, with_reasoning in SECTIONS:
        items = getattr(report, attr)
        parts.append(f"<h2>{heading.format(n=len(items))}</h2>")
        parts.append(f"<ul>{_render_html_items(items, with_reasoning)}</ul>")
    return "\n".join(parts)


def email_subject(report: TriageReport) -> str:
    return f"IDX Watch Report: {len(report.interesting)} interesting announcements found!"


def render_markdown(report: TriageReport, day: date) -> str:
    """Render the report as markdown."""
    lines = [
        f"# IDX Watch Report - {day.isoformat()}",
        "",
        f"**Generated:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Total:** {report.total}",
    ]
    for attr, heading, with_reasoning in SECTIONS:
        items: list[CategorizedAnnouncement] = getattr(report, attr)
        lines.extend(["", f"## {heading.format(n=len(items))}", ""])
        if not items:
            lines.append("_None_")
        for item in items:
            lines.append(f"- **{item.title}** ({item.announcement.time}) [PDF]({primary_pdf_url(item)})")
            if with_reasoning:
                lines.append(f"  - {item.verdict.reasoning}")
    return "\n".join(lines) + "\n"


async def save_markdown_report(report: TriageReport, reports_dir: Path, day: date) -> Path | None:
    """Save markdown report for a run."""
    try:
        reports_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%H%M%S")
        filepath = reports_dir / f"{day.isoformat()}_{timestamp}_report.md"
        filepath.write_text(render_markdown(report, day), encoding="utf-8")
        logger.info("Report saved | file=%s", filepath.name)
        return filepath
    except Exception as e:
        logger.error("Report save failed: %s", e, exc_info=True)
        return None


def _basic_auth(user: str, password: str) -> str:
    token = base64.b64encode(f"{user}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


async def send_email_report(report: TriageReport, config: Config, day: date) -> bool:
    """Send the report through Mailjet.

    Returns:
        True on success, False when credentials are missing or sending fails
    """
    if not config.email_enabled:
        logger.warning("Email credentials are not fully set. Skipping email report.")
        return False

    payload = {
        "Messages": [{
            "From": {"Email": config.sender_email, "Name": config.sender_name},
            "To": [{"Email": config.receiver_email}],
            "Subject": email_subject(report),
            "HTMLPart": render_email_html(report, day),
        }]
    }

    try:
        async with aiohttp.ClientSession() as session:
            async with session.post(
                MAILJET_SEND_URL,
                json=payload,
                headers={"Authorization": _basic_auth(config.mailjet_api_key, config.mailjet_api_secret)},
                timeout=aiohttp.ClientTimeout(total=30),
            ) as resp:
                if resp.status < 300:
                    logger.info("Email report sent | to=%s", config.receiver_email)
                    return True
                body = await resp.text()
                logger.warning("Email send failed | status=%d body=%s", resp.status, body[:300])
                return False
    except asyncio.TimeoutError:
        logger.warning("Email send timeout | url=%s", MAILJET_SEND_URL)
        return False
    except Exception as e:
        logger.error("Email send error: %s (%s)", e, type(e).__name__, exc_info=True)
        return False


async def deliver(
    report: TriageReport,
    config: Config,
    day: date,
    send_email: bool = True,
) -> dict[str, bool]:
    """Send the report through every configured channel.

    Returns:
        Success flag per channel ('log', 'markdown', and 'email' when requested)
    """
    log_report(report)
    outcomes = {"log": True}

    report_path = await save_markdown_report(report, config.reports_dir, day)
    outcomes["markdown"] = report_path is not None

    if send_email:
        outcomes["email"] = await send_email_report(report, config, day)

    return outcomes
