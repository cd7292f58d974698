"""Artifact extraction from accumulated assistant text.

Hidden design decisions:
- The markers that delimit a widget fence
- How a partially received fence is tracked across fragments
- How a fence body is validated into an Artifact
- What happens to fences whose body does not parse

The extractor always works on the whole accumulated buffer. A fence only
counts once its closing marker has arrived; until then the text stays
visible as-is.
"""

import json
import logging
from dataclasses import dataclass

from pydantic import ValidationError

from ..config import WIDGET_FENCE_CLOSE, WIDGET_FENCE_OPEN
from ..errors import ArtifactParseError
from .models import Artifact

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractionResult:
    """Clean narrative text plus the artifact derived from the buffer."""

    clean_text: str
    artifact: Artifact | None = None


@dataclass(frozen=True)
class _FenceSpan:
    start: int
    body_start: int
    body_end: int
    end: int


def parse_artifact(body: str) -> Artifact:
    """Parse the body of a closed fence into an Artifact.

    Args:
        body: Text between the opening and closing markers

    Returns:
        The validated artifact

    Raises:
        ArtifactParseError: If the body is not JSON or not an artifact object
    """
    text = body.strip()
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ArtifactParseError(f"malformed JSON ({e.msg} at char {e.pos})", body=text) from e

    if not isinstance(payload, dict):
        raise ArtifactParseError(f"expected an object, got {type(payload).__name__}", body=text)

    try:
        return Artifact.model_validate(payload)
    except ValidationError as e:
        raise ArtifactParseError(f"{e.error_count()} validation error(s)", body=text) from e


class FenceScanner:
    """Incremental two-state scanner (outside-fence / inside-fence).

    Keeps its scan position between calls so text that has already been
    scanned is never searched again. One scanner belongs to exactly one
    in-flight message buffer.

    For any sequence of fragments, ``feed`` returns the same result as
    ``extract`` on the concatenated buffer.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._spans: list[_FenceSpan] = []
        self._open_at: int | None = None
        self._pos = 0
        self._parsed: tuple[_FenceSpan, Artifact | None] | None = None

    @property
    def buffer(self) -> str:
        """Everything fed so far."""
        return self._buffer

    @property
    def inside_fence(self) -> bool:
        """Whether an opening marker is waiting for its closing marker."""
        return self._open_at is not None

    def feed(self, fragment: str) -> ExtractionResult:
        """Append a fragment and return the extraction for the whole buffer."""
        self._buffer += fragment
        self._advance()
        return self.result()

    def _advance(self) -> None:
        buf = self._buffer
        while True:
            if self._open_at is None:
                found = buf.find(WIDGET_FENCE_OPEN, self._pos)
                if found == -1:
                    # A marker may be split across fragments; re-check the tail next time
                    self._pos = max(self._pos, len(buf) - len(WIDGET_FENCE_OPEN) + 1)
                    return
                self._open_at = found
                self._pos = found + len(WIDGET_FENCE_OPEN)
            else:
                found = buf.find(WIDGET_FENCE_CLOSE, self._pos)
                if found == -1:
                    self._pos = max(self._pos, len(buf) - len(WIDGET_FENCE_CLOSE) + 1)
                    return
                self._spans.append(_FenceSpan(
                    start=self._open_at,
                    body_start=self._open_at + len(WIDGET_FENCE_OPEN),
                    body_end=found,
                    end=found + len(WIDGET_FENCE_CLOSE),
                ))
                self._open_at = None
                self._pos = found + len(WIDGET_FENCE_CLOSE)

    def result(self) -> ExtractionResult:
        """Build the extraction result for the current buffer."""
        if not self._spans:
            return ExtractionResult(clean_text=self._buffer)

        pieces = []
        cursor = 0
        for span in self._spans:
            pieces.append(self._buffer[cursor:span.start])
            cursor = span.end
        pieces.append(self._buffer[cursor:])

        return ExtractionResult(
            clean_text="".join(pieces).strip(),
            artifact=self._last_artifact(),
        )

    def _last_artifact(self) -> Artifact | None:
        # Last fence wins; a broken last fence means no artifact at all
        span = self._spans[-1]
        if self._parsed is not None and self._parsed[0] == span:
            return self._parsed[1]

        body = self._buffer[span.body_start:span.body_end]
        try:
            artifact = parse_artifact(body)
        except ArtifactParseError as e:
            logger.warning("Dropping widget fence at offset %d: %s", span.start, e)
            artifact = None

        self._parsed = (span, artifact)
        return artifact


def extract(buffer: str) -> ExtractionResult:
    """Split an accumulated buffer into clean text and its artifact.

    Pure function: the same buffer always yields the same result.

    Args:
        buffer: Full text received so far for one message

    Returns:
        ExtractionResult with every closed fence removed from the text and
        the artifact parsed from the last closed fence (None if there is no
        closed fence or it does not parse)
    """
    return FenceScanner().feed(buffer)
