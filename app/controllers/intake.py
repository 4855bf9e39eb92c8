"""Call intake endpoints.

For the stage-by-stage map see `app.pipelines.intake.flow`. The browser
client drives one call as follows:

1. `POST /intake/calls` starts a session and queues the greeting.
2. Recognizer results are posted to `/fragments`; end-of-stream events to
   `/stream-end`. Typed text goes to `/messages` and skips the debounce.
3. Dispatcher speech is streamed back, in order, over the `/audio`
   WebSocket.
4. `DELETE /intake/calls/{session_id}` ends the call.
"""

from __future__ import annotations

import base64
import logging

from fastapi import APIRouter, Response, WebSocket, WebSocketDisconnect, status

from app.controllers.dependencies import LiveCallDep, RegistryDep
from app.pipelines.intake import RecognizerFragment, UnknownSessionError
from app.views import (
    CallSnapshotResponse,
    CallStartResponse,
    ErrorResponse,
    FragmentRequest,
    FragmentResponse,
    LocationHintRequest,
    MessageRequest,
    RecognizerErrorRequest,
    RecognizerStatus,
    TurnResponse,
)

router = APIRouter(
    prefix="/intake",
    tags=["intake"],
    responses={
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    },
)

logger = logging.getLogger(__name__)

_UNKNOWN_SESSION_CLOSE_CODE = 4404


@router.post(
    "/calls",
    response_model=CallStartResponse,
    status_code=status.HTTP_201_CREATED,
)
async def start_call(registry: RegistryDep) -> CallStartResponse:
    pipeline = registry.start()
    greeting = pipeline.greet()
    return CallStartResponse(session_id=pipeline.session_id, greeting=greeting)


@router.post("/calls/{session_id}/fragments", response_model=FragmentResponse)
async def post_fragment(payload: FragmentRequest, pipeline: LiveCallDep) -> FragmentResponse:
    processing = pipeline.accept_fragment(
        RecognizerFragment(
            is_final=payload.is_final,
            text=payload.text,
            result_index=payload.result_index,
        )
    )
    return FragmentResponse(
        processing=processing,
        interim=pipeline.snapshot().interim_transcript,
    )


@router.post("/calls/{session_id}/stream-end", response_model=FragmentResponse)
async def post_stream_end(pipeline: LiveCallDep) -> FragmentResponse:
    """The recognizer stopped on its own; it restarts with a fresh stream."""

    return FragmentResponse(processing=pipeline.flush(), interim="")


@router.post("/calls/{session_id}/messages", response_model=TurnResponse)
async def post_message(payload: MessageRequest, pipeline: LiveCallDep) -> TurnResponse:
    outcome = await pipeline.submit_text(payload.text)
    return TurnResponse.from_outcome(outcome)


@router.post("/calls/{session_id}/location", response_model=CallSnapshotResponse)
async def post_location(
    payload: LocationHintRequest,
    pipeline: LiveCallDep,
) -> CallSnapshotResponse:
    pipeline.set_location_hint(payload.latitude, payload.longitude)
    return CallSnapshotResponse.from_snapshot(pipeline.snapshot())


@router.post("/calls/{session_id}/recognizer-errors", response_model=RecognizerStatus)
async def post_recognizer_error(
    payload: RecognizerErrorRequest,
    pipeline: LiveCallDep,
) -> RecognizerStatus:
    state = pipeline.report_recognizer_error(payload.error)
    return RecognizerStatus(
        available=state.available,
        listening=state.listening,
        message=state.message,
        last_fault=state.last_fault.value if state.last_fault else None,
    )


@router.get("/calls/{session_id}", response_model=CallSnapshotResponse)
async def get_call(pipeline: LiveCallDep) -> CallSnapshotResponse:
    return CallSnapshotResponse.from_snapshot(pipeline.snapshot())


@router.delete("/calls/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def end_call(pipeline: LiveCallDep, registry: RegistryDep) -> Response:
    registry.end(pipeline.session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.websocket("/calls/{session_id}/audio")
async def stream_call_audio(websocket: WebSocket, session_id: str, registry: RegistryDep) -> None:
    """Push each synthesized dispatcher reply to the caller, in order."""

    try:
        pipeline = registry.get(session_id)
    except UnknownSessionError:
        await websocket.close(code=_UNKNOWN_SESSION_CLOSE_CODE)
        return

    await websocket.accept()
    try:
        while True:
            reply = await pipeline.next_audio()
            if reply is None:
                break
            await websocket.send_json(
                {
                    "text": reply.text,
                    "mediaType": reply.audio.media_type,
                    "voiceId": reply.audio.voice_id,
                    "audio": base64.b64encode(reply.audio.audio_bytes).decode("ascii"),
                }
            )
    except WebSocketDisconnect:
        logger.info("Caller audio socket disconnected session=%s", session_id)
        return
    await websocket.close()


__all__ = ["router"]
