"""Call intake pipeline package.

Modules follow the order in which a caller utterance is handled:

1. `transcript`: fold recognizer fragments into finalized utterances.
2. `session`: per-call turn history, current record and call id.
3. `prompts`: assemble the Bedrock system/user prompts.
4. `extraction`: call the model and validate the response contract.
5. `location`: best-effort geocoding enrichment.
6. `change_detector`: decide whether the record is persisted.
7. `persistence`: serialized background writes to the call repository.
8. `sequencer`: ordered speech delivery of dispatcher replies.
9. `flow`: the per-call pipeline tying the stages together.

The FastAPI controller only talks to `registry` and `flow`.
"""

from .change_detector import ChangeDetector
from .extraction import FALLBACK_REPLY, ExtractionEngine
from .flow import CallIntakePipeline, CallSnapshot, SpokenReply
from .location import LocationResolver
from .persistence import PersistenceQueue, build_call_write
from .recognizer import RecognizerFault, RecognizerMonitor, RecognizerState
from .registry import (
    CallSessionRegistry,
    UnknownSessionError,
    build_default_pipeline,
    get_registry,
)
from .sequencer import SpeechResponseSequencer
from .session import ConversationSession, InvalidSessionState
from .transcript import TranscriptAccumulator
from .types import (
    ConversationTurn,
    ExtractionOutcome,
    ExtractionResult,
    RecognizerFragment,
    Speaker,
    TurnOutcome,
)

__all__ = [
    "CallIntakePipeline",
    "CallSessionRegistry",
    "CallSnapshot",
    "ChangeDetector",
    "ConversationSession",
    "ConversationTurn",
    "ExtractionEngine",
    "ExtractionOutcome",
    "ExtractionResult",
    "FALLBACK_REPLY",
    "InvalidSessionState",
    "LocationResolver",
    "PersistenceQueue",
    "RecognizerFault",
    "RecognizerFragment",
    "RecognizerMonitor",
    "RecognizerState",
    "Speaker",
    "SpeechResponseSequencer",
    "SpokenReply",
    "TranscriptAccumulator",
    "TurnOutcome",
    "UnknownSessionError",
    "build_call_write",
    "build_default_pipeline",
    "get_registry",
]
