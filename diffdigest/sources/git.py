"""Merged changes read from a local git repository.

Walks first-parent history of a ref and turns each merge (or, for
squash-merge repositories, each commit) into a DiffItem. Uses subprocess
directly to avoid a dependency on GitPython.
"""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path

from diffdigest.errors import SourceError
from diffdigest.schemas.notes import DiffItem, DiffPage
from diffdigest.sources.base import DiffSource

logger = logging.getLogger(__name__)

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = f"%H{_FIELD_SEP}%s{_FIELD_SEP}%b{_RECORD_SEP}"

# "Merge pull request #42 from owner/branch"
_MERGE_PR_RE = re.compile(r"^Merge pull request #(\d+) from \S+")
# "Add dark mode (#42)"
_SQUASH_PR_RE = re.compile(r"^(?P<title>.*?)\s*\(#(?P<number>\d+)\)\s*$")


@dataclass(frozen=True)
class _Commit:
    sha: str
    subject: str
    body: str


class GitHistorySource(DiffSource):
    """Lists merged changes from a git repository's history."""

    def __init__(
        self,
        repo_path: Path | str = ".",
        *,
        ref: str = "HEAD",
        merges_only: bool = True,
        web_url: str = "",
        per_page: int = 10,
    ) -> None:
        self._cwd = str(repo_path)
        self._ref = ref
        self._merges_only = merges_only
        self._web_url = web_url.rstrip("/")
        self._per_page = per_page

    def _run(self, *args: str, check: bool = True) -> subprocess.CompletedProcess:
        """Run a git command and return the result."""
        cmd = ["git", *args]
        try:
            return subprocess.run(
                cmd,
                cwd=self._cwd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=check,
                timeout=30,
            )
        except subprocess.CalledProcessError as e:
            raise SourceError(
                f"git {args[0]} failed in {self._cwd}: {e.stderr.strip() or e}"
            ) from e
        except (OSError, subprocess.TimeoutExpired) as e:
            raise SourceError(f"Could not run git in {self._cwd}: {e}") from e

    def fetch_page(self, page: int = 1, per_page: int | None = None) -> DiffPage:
        per_page = per_page or self._per_page
        if page < 1 or per_page < 1:
            raise ValueError(f"Invalid page {page} / per_page {per_page}")

        # One extra record tells us whether a next page exists
        commits = self._log(skip=(page - 1) * per_page, limit=per_page + 1)
        has_more = len(commits) > per_page

        return DiffPage(
            diffs=[self._to_item(c) for c in commits[:per_page]],
            next_page=page + 1 if has_more else None,
            current_page=page,
            per_page=per_page,
        )

    def find(self, item_id: str) -> DiffItem | None:
        skip = 0
        while True:
            commits = self._log(skip=skip, limit=self._per_page)
            if not commits:
                return None
            for commit in commits:
                if self._identify(commit)[0] == item_id:
                    return self._to_item(commit)
            skip += len(commits)

    def _log(self, *, skip: int, limit: int) -> list[_Commit]:
        args = [
            "log",
            "--first-parent",
            f"--skip={skip}",
            f"--max-count={limit}",
            f"--format={_LOG_FORMAT}",
        ]
        if self._merges_only:
            args.append("--merges")
        args.append(self._ref)

        output = self._run(*args).stdout
        commits: list[_Commit] = []
        for record in output.split(_RECORD_SEP):
            record = record.strip("\n")
            if not record:
                continue
            sha, subject, body = (record.split(_FIELD_SEP, 2) + ["", ""])[:3]
            commits.append(_Commit(sha=sha.strip(), subject=subject, body=body.strip()))
        return commits

    def _identify(self, commit: _Commit) -> tuple[str, str, bool]:
        """Return (id, description, is_pull_request) for a commit."""
        merge = _MERGE_PR_RE.match(commit.subject)
        if merge:
            title = next(
                (line.strip() for line in commit.body.splitlines() if line.strip()),
                commit.subject,
            )
            return merge.group(1), title, True

        squash = _SQUASH_PR_RE.match(commit.subject)
        if squash:
            return squash.group("number"), squash.group("title"), True

        return commit.sha[:7], commit.subject, False

    def _diff(self, sha: str) -> str:
        """Net change introduced by a commit relative to its first parent."""
        result = self._run("diff", "--no-color", f"{sha}^1", sha, check=False)
        if result.returncode == 0:
            return result.stdout
        # Root commit: no first parent to diff against
        logger.debug("No first parent for %s, falling back to git show", sha)
        return self._run("show", "--no-color", "--format=", sha).stdout

    def _to_item(self, commit: _Commit) -> DiffItem:
        item_id, description, is_pr = self._identify(commit)
        url = ""
        if self._web_url:
            url = (
                f"{self._web_url}/pull/{item_id}" if is_pr
                else f"{self._web_url}/commit/{commit.sha}"
            )
        return DiffItem(
            id=item_id,
            description=description,
            diff=self._diff(commit.sha),
            url=url,
        )
