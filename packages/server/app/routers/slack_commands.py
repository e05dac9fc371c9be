"""
Slack slash-command endpoint.

Slack POSTs each invocation as a form-encoded body signed with the app's
signing secret. Slack expects an answer within 3 seconds, so the pipeline
runs as a background task: the HTTP response carries its acknowledgment,
and everything after that (lookups, dispatch) reaches the user through the
command's response_url.

Endpoints (all under /v1/slack):
  POST /v1/slack/commands
      Receive a slash command (verified with X-Slack-Signature).
"""

import asyncio
from typing import Optional
from urllib.parse import parse_qs

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from app.dependencies import get_slash_pipeline
from app.logging_config import get_logger
from app.slack.client import post_to_response_url
from app.slack.commands import SlashCommand, resolve_command_prompt
from app.slack.config import slack_settings
from app.slack.pipeline import SlashCommandPipeline
from app.slack.signing import verify_slack_signature

logger = get_logger(__name__)

router = APIRouter()

# Leave headroom under Slack's 3 second deadline
ACK_TIMEOUT_SECONDS = 2.5

COMMAND_NOT_ENABLED_TEXT = "This command is not enabled."

# Strong references so running pipelines are not garbage collected
_background_tasks: set[asyncio.Task] = set()


def _parse_form(body: bytes) -> dict[str, str]:
    parsed = parse_qs(body.decode("utf-8"), keep_blank_values=True)
    return {key: values[0] for key, values in parsed.items() if values}


def _make_respond(response_url: Optional[str]):
    async def respond(payload: dict) -> None:
        if not response_url:
            raise RuntimeError("Slash command has no response_url")
        await post_to_response_url(response_url, payload)

    return respond


@router.post("/commands")
async def receive_slash_command(
    request: Request,
    pipeline: SlashCommandPipeline = Depends(get_slash_pipeline),
) -> Response:
    """Verify, acknowledge and hand off one slash command."""
    body = await request.body()
    if not verify_slack_signature(
        body,
        request.headers.get("X-Slack-Request-Timestamp", ""),
        request.headers.get("X-Slack-Signature", ""),
        slack_settings.signing_secret,
        tolerance_seconds=slack_settings.signature_tolerance_seconds,
    ):
        logger.warning("Rejected slash command with invalid Slack signature")
        raise HTTPException(status_code=401, detail="Invalid Slack signature")

    try:
        command = SlashCommand.model_validate(_parse_form(body))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Malformed slash command: {e}")

    prompt = resolve_command_prompt(slack_settings, command)
    if prompt is None:
        logger.debug(f"slack: command {command.command} is not enabled")
        return JSONResponse(
            {"text": COMMAND_NOT_ENABLED_TEXT, "response_type": "ephemeral"}
        )

    loop = asyncio.get_running_loop()
    acked: asyncio.Future = loop.create_future()

    async def ack(payload: Optional[dict] = None) -> None:
        if not acked.done():
            acked.set_result(payload)

    task = asyncio.create_task(
        pipeline.handle(command, ack, _make_respond(command.response_url), prompt)
    )
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    await asyncio.wait(
        {acked, task},
        timeout=ACK_TIMEOUT_SECONDS,
        return_when=asyncio.FIRST_COMPLETED,
    )
    if acked.done() and acked.result():
        return JSONResponse(acked.result())
    if not acked.done():
        logger.warning(f"slack: command {command.command} was not acknowledged in time")
    return Response(status_code=200)
