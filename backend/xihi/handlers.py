import asyncio
import logging
from functools import partial
from typing import Any

from pydantic import ValidationError

from xihi.core.config import Settings
from xihi.dispatcher import EventDispatcher
from xihi.github.auth import create_installation_token
from xihi.github.client import GitHubClient
from xihi.schemas.events import Commit, PullRequestEvent, PushEvent
from xihi.services.protocol import ChangedFiles, analyze_ref

logger = logging.getLogger(__name__)

PR_ACTIONS = {"opened", "synchronize"}


async def _authenticate(settings: Settings) -> str | None:
    try:
        return await create_installation_token(settings)
    except Exception:
        logger.exception("Error creating installation token")
        return None


async def _comment_on_commit(
    gh: GitHubClient, owner: str, repo: str, commit: Commit
) -> None:
    files = ChangedFiles(commit.added, commit.modified, commit.removed)
    try:
        body = await analyze_ref(gh, owner, repo, commit.id, files)
        if body is None:
            return
        comment = await gh.create_commit_comment(owner, repo, commit.id, body)
        logger.info(f"Successfully created comment <{comment.get('html_url')}>")
    except Exception:
        logger.exception(f"Failed to process commit {commit.id}")


async def handle_push(payload: Any, *, settings: Settings) -> None:
    try:
        event = PushEvent.model_validate(payload)
    except ValidationError as exc:
        logger.warning(f"Ignoring malformed push payload: {exc.error_count()} errors")
        return
    logger.info(f"Received push {event.after} => {event.ref}")

    token = await _authenticate(settings)
    if token is None:
        return

    owner = event.repository.owner.login
    repo = event.repository.name
    async with GitHubClient(settings, token) as gh:
        await asyncio.gather(
            *(_comment_on_commit(gh, owner, repo, c) for c in event.commits)
        )


async def handle_pull_request(payload: Any, *, settings: Settings) -> None:
    try:
        event = PullRequestEvent.model_validate(payload)
    except ValidationError as exc:
        logger.warning(f"Ignoring malformed pull_request payload: {exc.error_count()} errors")
        return
    if event.action not in PR_ACTIONS:
        return

    owner = event.repository.owner.login
    repo = event.repository.name
    number = event.number
    logger.info(f"Received PR #{number} {event.action}")

    token = await _authenticate(settings)
    if token is None:
        return

    async with GitHubClient(settings, token) as gh:
        files = ChangedFiles()
        buckets = {
            "added": files.added,
            "modified": files.modified,
            "removed": files.removed,
        }
        try:
            for change in await gh.list_pull_request_files(owner, repo, number):
                bucket = buckets.get(change.get("status"))
                if bucket is not None:
                    bucket.append(change["filename"])
        except Exception:
            logger.exception(f"Error getting files for PR #{number}")
            return

        body = await analyze_ref(
            gh, owner, repo, event.pull_request.head.sha, files, pr=True
        )
        if body is None:
            return
        try:
            comment = await gh.create_issue_comment(owner, repo, number, body)
        except Exception:
            logger.exception(f"Error creating comment on PR #{number}")
            return
        logger.info(f"Successfully created comment <{comment.get('html_url')}>")


def build_dispatcher(settings: Settings) -> EventDispatcher:
    return EventDispatcher(
        {
            "push": [partial(handle_push, settings=settings)],
            "pull_request": [partial(handle_pull_request, settings=settings)],
        }
    )
