"""Client-side capture controller: turns a recognition stream into one finalized transcript.

The controller runs on a single asyncio event loop. Engine callbacks are plain
synchronous calls on that loop; submission is awaited. Every engine instance is
bound to its own session id, and callbacks carrying any other id are dropped.
"""

import asyncio
import logging
from enum import Enum
from functools import partial
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from voicenote_engine.capture.events import (
    PROCESSING_END,
    PROCESSING_START,
    REFRESH_PROCESSED_ITEMS,
    STATE_CHANGED,
    TRANSCRIPT_CHANGED,
    CaptureEventBus,
)
from voicenote_engine.core.config import Settings
from voicenote_engine.interfaces.recognition_interface import (
    RecognitionConfig,
    RecognitionEngine,
    RecognitionEngineFactory,
    RecognitionResult,
)

logger = logging.getLogger(__name__)

ABORTED_ERROR = "aborted"
NOT_SUPPORTED_MESSAGE = "Speech recognition not supported"
START_FAILED_MESSAGE = "Failed to start recording"
SUBMISSION_FAILED_MESSAGE = "Failed to process your voice note"

Submitter = Callable[[str], Awaitable[Any]]

class CaptureState(str, Enum):
    idle = "idle"
    recording = "recording"
    processing = "processing"
    done = "done"

class SpeechSessionController:
    """Owns the recording lifecycle and transcript accumulation.

    States: idle -> recording -> processing -> done -> idle, or recording -> idle
    when nothing was said or the engine failed. `error` is an overlay message
    that clears itself; it never blocks the state machine.
    """

    def __init__(
        self,
        engine_factory: Optional[RecognitionEngineFactory],
        submitter: Submitter,
        config: Optional[RecognitionConfig] = None,
        events: Optional[CaptureEventBus] = None,
        completion_delay_seconds: float = 1.5,
        error_clear_seconds: float = 5.0,
    ):
        self.config = config or RecognitionConfig()
        self.events = events or CaptureEventBus()
        self.completion_delay_seconds = completion_delay_seconds
        self.error_clear_seconds = error_clear_seconds
        self._engine_factory = engine_factory
        self._submitter = submitter

        self.state = CaptureState.idle
        self.final_segments: List[str] = []
        self.interim_segment = ""
        self.stop_requested = False
        self.session_id = 0
        self.error: Optional[str] = None

        self._engine_sequence = 0
        self._engine_session_id = 0
        self._active_session_id: Optional[int] = None
        self._error_timer: Optional[asyncio.TimerHandle] = None
        self._finish_task: Optional[asyncio.Task] = None

        self._engine: Optional[RecognitionEngine] = self._create_engine()
        self.supported = self._engine is not None
        if not self.supported:
            self.error = NOT_SUPPORTED_MESSAGE

    # --- Derived state ---

    @property
    def committed_transcript(self) -> str:
        return "".join(self.final_segments)

    @property
    def preview(self) -> str:
        """Live text shown while recording: committed fragments, then the interim one."""
        return self.committed_transcript + self.interim_segment

    # --- Commands ---

    def start(self) -> bool:
        """Begins a capture session. Returns False when the call was ignored or failed."""
        if not self.supported or self._engine is None:
            logger.warning("Speech recognition is not supported, cannot start recording.")
            return False
        if self.state is not CaptureState.idle:
            logger.debug(f"Ignoring start() while {self.state.value}.")
            return False

        self._reset_buffers()
        self._clear_error()
        self.session_id = self._engine_session_id
        self._active_session_id = self.session_id
        self._set_state(CaptureState.recording)
        try:
            self._engine.start()
        except Exception as e:
            logger.error(f"Error starting speech recognition: {e}", exc_info=True)
            self._active_session_id = None
            self._replace_engine()
            self._set_state(CaptureState.idle)
            self._show_error(START_FAILED_MESSAGE)
            return False
        logger.info(f"Recording started (session {self.session_id}).")
        return True

    async def stop(self) -> None:
        """Stops recording and submits the committed transcript, if any.

        A second call while a stop is already in flight does nothing.
        """
        if self.state is not CaptureState.recording or self.stop_requested:
            logger.debug("Ignoring stop(): no recording in progress.")
            return
        self.stop_requested = True
        # Read the buffer before teardown; abort() can fire a late terminal event
        transcript = self.committed_transcript
        logger.info(f"Recording stopped by user (session {self.session_id}).")
        self._active_session_id = None
        self._replace_engine()
        await self._finish(transcript)

    async def wait_for_completion(self) -> None:
        """Waits for a submission started by a natural end of the stream."""
        if self._finish_task is not None:
            await self._finish_task

    def close(self) -> None:
        """Releases the engine and pending timers."""
        self._active_session_id = None
        if self._engine is not None:
            self._abort_engine(self._engine)
            self._engine = None
        if self._error_timer is not None:
            self._error_timer.cancel()
            self._error_timer = None

    # --- Engine callbacks ---

    def _on_result(self, session_id: int, result_index: int, results: Sequence[RecognitionResult]) -> None:
        if session_id != self._active_session_id or self.state is not CaptureState.recording:
            logger.debug(f"Dropping stale recognition result from session {session_id}.")
            return
        interim = ""
        for result in results[result_index:]:
            if result.is_final:
                self.final_segments.append(result.text)
            else:
                interim += result.text
        self.interim_segment = interim
        self.events.emit(TRANSCRIPT_CHANGED, preview=self.preview, committed=self.committed_transcript)

    def _on_error(self, session_id: int, error_code: str) -> None:
        if session_id != self._active_session_id:
            logger.debug(f"Dropping stale recognition error '{error_code}' from session {session_id}.")
            return
        if error_code == ABORTED_ERROR:
            logger.debug("Recognition aborted, waiting for the stream to end.")
            return
        logger.error(f"Speech recognition error: {error_code}")
        self._active_session_id = None
        self._replace_engine()
        self._reset_buffers()
        self._set_state(CaptureState.idle)
        self._show_error(f"Speech recognition error: {error_code}")

    def _on_end(self, session_id: int) -> None:
        if session_id != self._active_session_id:
            logger.debug(f"Dropping stale end event from session {session_id}.")
            return
        if self.stop_requested:
            return
        self.stop_requested = True
        transcript = self.committed_transcript
        logger.info(f"Recognition stream ended on its own (session {session_id}).")
        self._active_session_id = None
        self._replace_engine()
        self._finish_task = asyncio.get_running_loop().create_task(self._finish(transcript))

    # --- Internals ---

    async def _finish(self, transcript: str) -> None:
        text = transcript.strip()
        if not text:
            logger.info("No speech captured, returning to idle without submitting.")
            self._reset_buffers()
            self._set_state(CaptureState.idle)
            return

        self._set_state(CaptureState.processing)
        self.events.emit(PROCESSING_START)
        try:
            await self._submitter(text)
        except Exception as e:
            logger.error(f"Error processing transcription: {e}", exc_info=True)
            self._show_error(SUBMISSION_FAILED_MESSAGE)
        else:
            self.events.emit(REFRESH_PROCESSED_ITEMS)
        finally:
            self.events.emit(PROCESSING_END)

        self._reset_buffers()
        self._set_state(CaptureState.done)
        await asyncio.sleep(self.completion_delay_seconds)
        if self.state is CaptureState.done:
            self._set_state(CaptureState.idle)

    def _create_engine(self) -> Optional[RecognitionEngine]:
        if self._engine_factory is None:
            return None
        self._engine_sequence += 1
        session_id = self._engine_sequence
        try:
            engine = self._engine_factory(
                self.config,
                partial(self._on_result, session_id),
                partial(self._on_error, session_id),
                partial(self._on_end, session_id),
            )
        except Exception as e:
            logger.error(f"Could not create speech recognition engine: {e}", exc_info=True)
            return None
        self._engine_session_id = session_id
        return engine

    def _replace_engine(self) -> None:
        """Aborts and discards the current engine, then primes a fresh one."""
        if self._engine is not None:
            self._abort_engine(self._engine)
        self._engine = self._create_engine()
        if self._engine is None:
            self.supported = False
            self._show_error(NOT_SUPPORTED_MESSAGE, auto_clear=False)

    @staticmethod
    def _abort_engine(engine: RecognitionEngine) -> None:
        try:
            engine.abort()
        except Exception as e:
            logger.warning(f"Error aborting recognition engine: {e}")

    def _reset_buffers(self) -> None:
        self.final_segments = []
        self.interim_segment = ""
        self.stop_requested = False

    def _set_state(self, state: CaptureState) -> None:
        if state is self.state:
            return
        logger.debug(f"Capture state {self.state.value} -> {state.value}")
        self.state = state
        self.events.emit(STATE_CHANGED, state=state)

    def _show_error(self, message: str, auto_clear: bool = True) -> None:
        self.error = message
        if self._error_timer is not None:
            self._error_timer.cancel()
            self._error_timer = None
        if not auto_clear:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, error message will not auto-clear.")
            return
        self._error_timer = loop.call_later(self.error_clear_seconds, self._expire_error, message)

    def _expire_error(self, message: str) -> None:
        if self.error == message:
            self.error = None
        self._error_timer = None

    def _clear_error(self) -> None:
        self.error = None
        if self._error_timer is not None:
            self._error_timer.cancel()
            self._error_timer = None

def create_capture_controller(
    settings: Settings,
    engine_factory: Optional[RecognitionEngineFactory],
    submitter: Submitter,
    events: Optional[CaptureEventBus] = None,
) -> SpeechSessionController:
    """Builds a controller primed with the configured language and timings."""
    return SpeechSessionController(
        engine_factory=engine_factory,
        submitter=submitter,
        config=RecognitionConfig(language=settings.capture_language),
        events=events,
        completion_delay_seconds=settings.capture_completion_delay_seconds,
        error_clear_seconds=settings.capture_error_clear_seconds,
    )
