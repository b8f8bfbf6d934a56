"""
Chat routes streaming the data stream protocol.

Each response line is one of:
- g:"..." reasoning fragment
- 0:"..." content fragment
- 8:[...] structured recommendations block
- 3:"..." error that occurred after streaming began
"""

import asyncio
import logging

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from chatstream.models.request import ChatRequest
from chatstream.models.response import ChatModelInfo, ModelsResponse
from chatstream.providers.registry import DEFAULT_CHAT_MODEL, provider_registry
from chatstream.services.cancellation import CancellationToken
from chatstream.services.sinks import DataStreamSinks
from chatstream.utils.exceptions import (
    CancellationError,
    ChatStreamError,
    ConfigurationError,
    raise_bad_request,
    raise_service_unavailable,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/chat")
async def chat(request: ChatRequest):
    """
    POST /api/chat - stream a model response

    Reasoning and content fragments are forwarded as they arrive. A
    <recommendations> block in the answer is sent once as an annotation
    and is not part of the content. Closing the connection cancels the
    upstream read.
    """
    model_id = request.model or DEFAULT_CHAT_MODEL
    if model_id not in provider_registry.get_model_ids():
        raise_bad_request(f"Unknown model '{model_id}'")

    try:
        provider = provider_registry.get_provider(model_id)
    except ConfigurationError as e:
        logger.error(f"Model '{model_id}' is not configured: {e}")
        raise_service_unavailable(str(e))

    messages = [m.model_dump() for m in request.messages]
    sinks = DataStreamSinks(include_reasoning=request.include_reasoning)
    cancel_token = CancellationToken()

    async def run_completion():
        provider_registry.stream_started()
        try:
            if request.include_reasoning:
                await provider.get_content_with_thinking(
                    messages, request.system_prompt, sinks, cancel_token
                )
            else:
                await provider.get_content_without_thinking(
                    messages, request.system_prompt, sinks, cancel_token
                )
        except CancellationError:
            logger.info(f"Chat stream for '{model_id}' aborted by client")
        except ChatStreamError as e:
            sinks.write_error(str(e))
        finally:
            provider_registry.stream_ended()
            sinks.close()

    async def stream_frames():
        task = asyncio.create_task(run_completion())
        try:
            async for frame in sinks.frames():
                yield frame
        finally:
            if not task.done():
                cancel_token.cancel()
            # run_completion must finish closing the upstream even if this generator is cancelled
            await asyncio.shield(task)

    return StreamingResponse(
        stream_frames(),
        media_type="text/plain; charset=utf-8",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
            "x-vercel-ai-data-stream": "v1",
        },
    )


@router.get("/models", response_model=ModelsResponse)
async def list_models():
    """List chat models for the model selector"""
    return ModelsResponse(
        models=[
            ChatModelInfo(id=m.id, name=m.name, description=m.description)
            for m in provider_registry.chat_models()
        ],
        default_model=DEFAULT_CHAT_MODEL,
    )
