"""
HTML status pages for browsers.

Read-only views of the dispatcher: an overview of every job that refreshes
itself, and a details page per job.
"""

from collections.abc import Iterable
from datetime import datetime
from html import escape

from jobdispatch.constants import (
    API_V1_PREFIX,
    REPORT_COLUMNS,
    REPORT_REFRESH_SECONDS,
    REPORT_TIME_FORMAT,
)
from jobdispatch.types.job import Job, JobCounts

CSS = """
table { border-collapse: collapse; padding: 5px; border: solid black 1px; }
td { border: solid black 1px; width: 20px; height: 20px; text-align: center; padding: 5px; }
td.committed { background-color: green; }
td.waiting { background-color: yellow; }
td.running { background-color: orange; }
h1 { text-align: center; }
"""


def _page(title: str, body: str, refresh_seconds: int | None = None) -> str:
    refresh = ""
    if refresh_seconds is not None:
        refresh = f'<meta http-equiv="refresh" content="{refresh_seconds}">\n'
    return (
        "<html><head>\n"
        f"<title>{escape(title)}</title>\n"
        f"{refresh}"
        f'<style type="text/css">{CSS}</style>\n'
        "</head>\n<body>\n"
        f"{body}"
        "</body></html>\n"
    )


def _format_time(moment: datetime | None) -> str:
    return moment.strftime(REPORT_TIME_FORMAT) if moment is not None else "-"


def _job_link(job: Job) -> str:
    return f"{API_V1_PREFIX}/jobs/{job.id}?output=html"


def jobs_table(jobs: Iterable[Job], columns: int = REPORT_COLUMNS) -> str:
    """Lay the jobs out in a table, ``columns`` cells per row."""
    rows: list[str] = []
    cells: list[str] = []
    for job in jobs:
        cells.append(
            f'<td class="{job.state.value}"><a href="{_job_link(job)}">{job.id}</a></td>'
        )
        if len(cells) == columns:
            rows.append("<tr>" + "".join(cells) + "</tr>")
            cells = []
    if cells or not rows:
        rows.append("<tr>" + "".join(cells) + "</tr>")
    return "<table>\n" + "\n".join(rows) + "\n</table>\n"


def render_jobs_report(jobs: list[Job], counts: JobCounts) -> str:
    """
    Render the overview page.

    Args:
        jobs: Every job, committed first, then running, then waiting.
        counts: Queue sizes matching ``jobs``.

    Returns:
        The HTML document.
    """
    body = (
        "<h1>Jobs status</h1>\n"
        f"{counts.total} jobs: {counts.waiting} waiting; "
        f"{counts.running} running; {counts.committed} committed<br/>\n"
        f"{jobs_table(jobs)}"
    )
    return _page("Jobs status", body, refresh_seconds=REPORT_REFRESH_SECONDS)


def render_job_report(job: Job) -> str:
    """Render the details page of one job."""
    fields = "".join(
        f"<li>{escape(key)}: {escape(value)}</li>\n" for key, value in job.fields.items()
    )
    body = (
        f"<h1>Details of job {job.id}</h1>\n"
        "<ul>\n"
        f"<li>status: {job.state.value}</li>\n"
        f"<li>Enqueued time: {_format_time(job.enqueued_at)}</li>\n"
        f"<li>Dequeued time: {_format_time(job.dequeued_at)}</li>\n"
        f"<li>Committed time: {_format_time(job.committed_at)}</li>\n"
        "</ul>\n"
        f"<br/><ul>\n{fields}</ul>\n"
        '<a href="/">Back to jobs</a>\n'
    )
    return _page(f"Job {job.id}", body)
