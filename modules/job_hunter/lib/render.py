from __future__ import annotations

from collections.abc import Sequence

from . import utils
from .models import EnrichedJob


def subject_for(count: int) -> str:
    return f"Daily Job Hunt India: {count} aligned internship/job links"


def one_line(job: EnrichedJob) -> str:
    """'<title> [<role>] [<location>] (match score: <n>)' with whitespace collapsed."""
    return f"{utils.collapse_ws(job.title)} [{job.role_type}] [{job.location_tag}] (match score: {job.score})"


def build_digest(jobs: Sequence[EnrichedJob]) -> str:
    """
    One HTML table, one row per job:
      # | Title | Type | Location | Score | Apply | Domain
    Every text cell and the href are escaped.
    """
    rows: list[str] = []
    for i, j in enumerate(jobs, start=1):
        apply = j.final_apply_url or ""
        link_html = f'<a href="{utils.esc(apply)}">{utils.esc(apply)}</a>' if apply else ""
        rows.append(
            "<tr>"
            f"<td>{i}</td>"
            f"<td>{utils.esc(utils.collapse_ws(j.title))}</td>"
            f"<td>{utils.esc(j.role_type)}</td>"
            f"<td>{utils.esc(j.location_tag)}</td>"
            f"<td>{j.score}</td>"
            f"<td>{link_html}</td>"
            f"<td>{utils.esc(j.domain)}</td>"
            "</tr>"
        )
    return (
        "<table border='1' cellspacing='0' cellpadding='6'>"
        "<tr><th>#</th><th>Title</th><th>Type</th><th>Location</th><th>Score</th><th>Apply</th><th>Domain</th></tr>"
        + "".join(rows)
        + "</table>"
    )


def build_text(jobs: Sequence[EnrichedJob], *, generated_at: str | None = None) -> str:
    """Plain-text alternative of the digest."""
    blocks = [
        f"{i}. {one_line(j)}\nType: {j.role_type}\nFinal Apply Link: {j.final_apply_url}\nCompany domain: {j.domain}"
        for i, j in enumerate(jobs, start=1)
    ]
    header = f"Found {len(jobs)} unique India-eligible resume-aligned roles.\nOnly final apply links are included."
    footer = f"Generated at: {generated_at or utils.now_iso()}"
    return "\n\n".join([header, *blocks, footer])


def wrap_document(content_html: str, *, heading: str | None = None, intro: str | None = None) -> str:
    parts: list[str] = ["<div>"]
    if heading:
        parts.append(f"<h2>{utils.esc(heading)}</h2>")
    if intro:
        parts.append(f"<p>{utils.esc(intro)}</p>")
    parts.append(content_html)
    parts.append("</div>")
    return "\n".join(parts)
