"""Interface definition for platform speech recognition engines.
"""

from dataclasses import dataclass
from typing import Callable, Protocol, Sequence, runtime_checkable

@dataclass
class RecognitionConfig:
    """Settings every engine instance is primed with."""
    language: str = "en-US"
    continuous: bool = False
    interim_results: bool = True

@dataclass
class RecognitionResult:
    """One recognized fragment. Interim fragments may still change; final ones never do."""
    text: str
    is_final: bool

ResultCallback = Callable[[int, Sequence[RecognitionResult]], None]
ErrorCallback = Callable[[str], None]
EndCallback = Callable[[], None]

@runtime_checkable
class RecognitionEngine(Protocol):
    """A single-use recognition stream. Instances are replaced, never restarted."""

    def start(self) -> None:
        """Begins delivering results. May raise if the platform refuses."""
        ...

    def abort(self) -> None:
        """Tears the stream down. May still fire `on_error('aborted')` or `on_end()` afterwards."""
        ...

class RecognitionEngineFactory(Protocol):
    """Creates a fresh engine wired to the given callbacks.

    `on_result(result_index, results)` receives the full result list of the
    stream; entries before `result_index` were already delivered.
    """

    def __call__(
        self,
        config: RecognitionConfig,
        on_result: ResultCallback,
        on_error: ErrorCallback,
        on_end: EndCallback,
    ) -> RecognitionEngine:
        ...
