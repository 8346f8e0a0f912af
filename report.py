import re
from datetime import datetime, timezone
from typing import List, Optional

from schemas import CreateCommunityRequest

DATA_HEADER = "# Original Communities Data:"

_NUMBERED_LINE = re.compile(r"^(\d+)\. (.*)$")
_LINE_BREAK = re.compile(r"\r\n|\r|\n")


def retained_lines(text: str) -> List[str]:
    """Lines of ``text`` that survive into the report: non-blank, original order."""
    return [line for line in _LINE_BREAK.split(text) if line.strip()]


def count_retained_lines(text: str) -> int:
    return len(retained_lines(text))


def generate_community_file(
    original_content: str,
    submission: CreateCommunityRequest,
    generated_at: Optional[datetime] = None,
) -> str:
    """
    Build the community configuration report for one submission.

    The output is a header with the generation time and every metadata field,
    a 1-based numbered listing of the non-blank input lines and a trailing
    total. Apart from the timestamp the result depends only on the arguments.
    """
    generated_at = generated_at or datetime.now(timezone.utc)
    lines = retained_lines(original_content)

    parts = [
        f"# Community Configuration Generated on {generated_at.isoformat()}",
        f"# Rename: {submission.rename}",
        f"# Robux Fund: {submission.robux_fund}",
        f"# Communities Member: {submission.communities_member}",
        f"# Owner Username: {submission.owner_username}",
    ]
    if submission.file_name:
        parts.append(f"# Source File: {submission.file_name}")
    parts.append("")
    parts.append(DATA_HEADER)
    parts.extend(f"{index}. {line}" for index, line in enumerate(lines, start=1))
    parts.append("")
    parts.append("# Processing Complete")
    parts.append(f"# Total Communities: {len(lines)}")

    return "\n".join(parts) + "\n"


def read_numbered_lines(report: str) -> List[str]:
    """
    Recover the numbered lines from a generated report, in order.

    Reading starts after the last data header (metadata values cannot
    shadow it) and stops at the first line that breaks the 1, 2, 3... sequence.
    """
    report_lines = _LINE_BREAK.split(report)
    try:
        start = len(report_lines) - report_lines[::-1].index(DATA_HEADER)
    except ValueError:
        return []

    recovered = []
    for line in report_lines[start:]:
        match = _NUMBERED_LINE.match(line)
        if not match or int(match.group(1)) != len(recovered) + 1:
            break
        recovered.append(match.group(2))
    return recovered
