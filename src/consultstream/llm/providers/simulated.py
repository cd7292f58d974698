"""Offline keyword responder.

Used when no API key is configured so the dashboard stays usable. Answers
are canned executive briefs streamed word by word, with a trailing widget
fence streamed in small pieces the way a real model delivers it.
"""

import asyncio
import base64
import json
from collections.abc import AsyncIterator, Callable
from typing import Any

from ...config import CONFIG_ERROR_SENTINEL, SIMULATED_WORD_DELAY, WIDGET_FENCE_CLOSE, WIDGET_FENCE_OPEN
from ..base import LLMProvider
from ..models import ChatMessage, GeneratedImage, InlineData, StreamChunk, StreamingResponse

# 1x1 transparent PNG
_PLACEHOLDER_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)

_FENCE_PIECE_SIZE = 40


def _fence(widget: dict[str, Any]) -> str:
    return f"{WIDGET_FENCE_OPEN}\n{json.dumps(widget, indent=2)}\n{WIDGET_FENCE_CLOSE}"


def _respond(message: str) -> tuple[str, dict[str, Any] | None]:
    """Pick a canned answer and optional widget for a message."""
    msg = message.lower()

    if "swot" in msg:
        return (
            "### SWOT Analysis\n\nBased on current market signals, here is the strategic assessment.",
            {
                "type": "framework",
                "title": "SWOT: Strategic Position",
                "data": {"sections": [
                    {"title": "Strengths", "content": ["High customer retention", "Proprietary IP"]},
                    {"title": "Weaknesses", "content": ["Limited regional presence", "Legacy tech debt"]},
                    {"title": "Opportunities", "content": ["AI integration", "Strategic partnerships"]},
                    {"title": "Threats", "content": ["New regulatory compliance", "Competitor price wars"]},
                ]},
            },
        )

    if "pestle" in msg:
        return (
            "### PESTLE Analysis\n\nExternal macro-environmental factors affecting your growth trajectory.",
            {
                "type": "framework",
                "title": "PESTLE Framework",
                "data": {"sections": [
                    {"title": "Political", "content": ["Trade tariffs", "Data sovereignty laws"]},
                    {"title": "Economic", "content": ["Inflationary pressure", "Currency fluctuation"]},
                    {"title": "Social", "content": ["Remote work trends", "Sustainability focus"]},
                    {"title": "Technological", "content": ["Generative AI adoption", "Cloud migration"]},
                ]},
            },
        )

    if any(word in msg for word in ("image", "visual", "picture")):
        return (
            "### Campaign Visual\n\nHere is a concept visual for the initiative.",
            {
                "type": "image_request",
                "title": "Campaign Concept",
                "data": {"prompt": f"Executive marketing visual: {message}"},
            },
        )

    if any(word in msg for word in ("kpi", "metric", "scorecard")):
        return (
            "### Performance Scorecard\n\nCore indicators are trending ahead of plan.",
            {
                "type": "kpi",
                "title": "Quarterly KPIs",
                "data": {"metrics": [
                    {"label": "Revenue", "value": "$2.4M", "change": "+12%"},
                    {"label": "Churn", "value": "3.1%", "change": "-0.4%"},
                    {"label": "NPS", "value": 62, "change": "+5"},
                ]},
            },
        )

    if any(word in msg for word in ("growth", "revenue", "sales", "chart")):
        return (
            "### Growth Projection\n\nCurrent trajectory indicates a **12.4% upside** if the new "
            "marketing initiative is executed in Q3.",
            {
                "type": "chart",
                "title": "Projected Revenue (Millions)",
                "data": {"chartType": "area", "points": [
                    {"label": "Jan", "value": 1.2},
                    {"label": "Feb", "value": 1.4},
                    {"label": "Mar", "value": 1.3},
                    {"label": "Apr", "value": 1.8},
                    {"label": "May", "value": 2.1},
                    {"label": "Jun", "value": 2.4},
                ]},
            },
        )

    if "competitor" in msg or "rival" in msg:
        return (
            "### Competitive Landscape\n\nKey rivals are pivoting towards aggressive pricing.\n\n"
            "**Strategic Response:**\n1. Focus on value-added services.\n"
            "2. Avoid direct price competition.\n3. Leverage your high NPS score.",
            None,
        )

    return (
        f"### Executive Insight\n\nI've analyzed your query regarding **\"{message}\"**.\n\n"
        "I recommend focusing on channel optimization.\n\n**Next Steps:**\n"
        "- Conduct a customer sentiment audit.\n- Review Q3 operational efficiency.",
        None,
    )


class SimulatedProvider(LLMProvider):
    """Keyword responder that streams canned briefs.

    Hidden design decisions:
    - Which keywords map to which widget
    - Fragment sizes and pacing of the simulated stream
    """

    def __init__(self, word_delay: float = SIMULATED_WORD_DELAY, configured: bool = True):
        """Initialize the simulated provider.

        Args:
            word_delay: Seconds to wait between streamed words
            configured: When False, behave like a provider with no credentials
        """
        self._word_delay = word_delay
        self._configured = configured

    @property
    def model(self) -> str:
        return "simulated"

    async def chat_stream(
        self,
        history: list[ChatMessage],
        message: str,
        attachment: InlineData | None = None,
        thinking: bool = False,
        language: str = "English",
        context: str | None = None,
        **kwargs: Any
    ) -> StreamingResponse:
        """Stream a canned answer for the message."""
        response = StreamingResponse(
            self._stream_generator(message, on_usage=lambda usage: response.set_usage(usage))
        )
        return response

    async def _stream_generator(
        self,
        message: str,
        on_usage: Callable[[dict[str, Any]], None],
    ) -> AsyncIterator[StreamChunk]:
        if not self._configured:
            yield StreamChunk(text=CONFIG_ERROR_SENTINEL)
            return

        text, widget = _respond(message)
        words = text.split(" ")
        for word in words:
            await asyncio.sleep(self._word_delay)
            yield StreamChunk(text=word + " ")

        if widget:
            yield StreamChunk(text="\n\n")
            fence = _fence(widget)
            for i in range(0, len(fence), _FENCE_PIECE_SIZE):
                await asyncio.sleep(self._word_delay)
                yield StreamChunk(text=fence[i:i + _FENCE_PIECE_SIZE])

        on_usage({
            "prompt_tokens": len(message.split()),
            "completion_tokens": len(words),
            "total_tokens": len(message.split()) + len(words),
        })

    async def generate_image(self, prompt: str) -> GeneratedImage | None:
        """Return a placeholder image."""
        await asyncio.sleep(self._word_delay)
        return GeneratedImage(data=_PLACEHOLDER_PNG, mime_type="image/png")

    async def close(self) -> None:
        pass
