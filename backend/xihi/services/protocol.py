"""
Version analysis for protocol definition files.

Definitions live at ``protocol/<name>.<version>.def``. Adding version N of a
definition is expected to leave version N-1 in place, so each added file is
diffed against its predecessor and the result rendered as a Markdown comment.
"""

import asyncio
import difflib
import logging
import re
from dataclasses import dataclass, field

from xihi.github.client import GitHubClient

logger = logging.getLogger(__name__)

PROTOCOL_DIR = "protocol/"
DEFINITION_RE = re.compile(r"^([^.]+)\.(\d+)\.def$")
DIFF_CONTEXT = 3
# Only \n ends a line; \r, \f and friends are content
LINE_RE = re.compile(r"[^\n]*\n|[^\n]+\Z")


@dataclass
class ChangedFiles:
    added: list[str] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    def under(self, prefix: str) -> "ChangedFiles":
        """Keep only paths below ``prefix``, with the prefix stripped."""

        def strip(paths: list[str]) -> list[str]:
            return [p[len(prefix):] for p in paths if p.startswith(prefix)]

        return ChangedFiles(strip(self.added), strip(self.modified), strip(self.removed))


@dataclass
class DefinitionDiff:
    name: str
    version: int
    diff: str


@dataclass
class _Notes:
    new_definitions: list[str] = field(default_factory=list)
    no_previous: list[str] = field(default_factory=list)
    unknown: list[str] = field(default_factory=list)
    diffs: list[DefinitionDiff] = field(default_factory=list)


def definition_path(name: str, version: int) -> str:
    return f"{PROTOCOL_DIR}{name}.{version}.def"


def split_lines(text: str) -> list[str]:
    return LINE_RE.findall(text)


def unified_diff(old_path: str, new_path: str, old: str, new: str) -> str:
    lines = []
    for line in difflib.unified_diff(
        split_lines(old),
        split_lines(new),
        fromfile=f"a/{old_path}",
        tofile=f"b/{new_path}",
        n=DIFF_CONTEXT,
    ):
        if not line.endswith("\n"):
            line += "\n\\ No newline at end of file\n"
        lines.append(line)
    if not lines:
        lines = [f"--- a/{old_path}\n", f"+++ b/{new_path}\n"]
    return "".join(lines)


def _file_list(header: str, files: list[str]) -> str:
    return "\n".join([header, *(f"- `{f}`" for f in sorted(files))])


def render_comment(files: ChangedFiles, notes: _Notes, pr: bool = False) -> str | None:
    summary = []
    if notes.new_definitions:
        summary.append(_file_list("Added new definition:", notes.new_definitions))
    if files.modified:
        summary.append(_file_list("Modified existing version:", files.modified))
    if files.removed:
        summary.append(_file_list("Removed:", files.removed))

    warnings = []
    if notes.no_previous:
        warnings.append(_file_list("Previous version not found:", notes.no_previous))
    if notes.unknown:
        warnings.append(_file_list("Invalid filename format:", notes.unknown))

    diffs = [
        f"### `{d.name}` {d.version - 1} => {d.version}\n```diff\n{d.diff}```"
        for d in sorted(notes.diffs, key=lambda d: d.name)
    ]

    # Nothing worth a comment
    if not warnings and not diffs:
        return None

    body = [
        "Version analysis for protocol definitions from applying this PR:"
        if pr
        else "Version analysis for protocol definitions in this commit:"
    ]
    if summary:
        body += ["## Summary", *summary]
    if warnings:
        body += ["## Warnings", *warnings]
    if diffs:
        body += ["## Diffs", *diffs]
    return "\n\n".join(body)


async def analyze_ref(
    client: GitHubClient,
    owner: str,
    repo: str,
    ref: str,
    files: ChangedFiles,
    pr: bool = False,
) -> str | None:
    """Build the comment body for the definitions changed at ``ref``, or None."""
    files = files.under(PROTOCOL_DIR)
    notes = _Notes()

    updated: list[tuple[str, int]] = []
    for filename in files.added:
        match = DEFINITION_RE.match(filename)
        if not match:
            notes.unknown.append(filename)
            continue
        name, version = match.group(1), int(match.group(2))
        if version == 1:
            notes.new_definitions.append(filename)
        else:
            updated.append((name, version))

    async def diff_definition(name: str, version: int) -> None:
        old_path = definition_path(name, version - 1)
        new_path = definition_path(name, version)

        old = await client.get_content(owner, repo, old_path, ref, required=False)
        if old is None:
            notes.no_previous.append(new_path[len(PROTOCOL_DIR):])
            return
        new = await client.get_content(owner, repo, new_path, ref)
        notes.diffs.append(
            DefinitionDiff(name, version, unified_diff(old_path, new_path, old, new))
        )

    try:
        async with asyncio.TaskGroup() as tg:
            for name, version in updated:
                tg.create_task(diff_definition(name, version))
    except ExceptionGroup:
        logger.warning(
            f"Failed to diff contents for {owner}/{repo}@{ref}", exc_info=True
        )
        return None

    return render_comment(files, notes, pr=pr)
