"""Rich renderables for messages and artifacts.

Hides the details of how each widget kind is drawn in the terminal.
"""

from typing import Any

from rich.console import Group, RenderableType
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..artifacts import Artifact, ArtifactKind
from ..conversation import Message, Role
from ..llm.models import GroundingMetadata

BAR_WIDTH = 30


def _bar(value: float, maximum: float) -> str:
    if maximum <= 0:
        return ""
    return "#" * max(1, round(BAR_WIDTH * value / maximum))


def _number(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def render_chart(artifact: Artifact) -> RenderableType:
    """Chart widget as a labelled bar table."""
    points = artifact.data.get("points") or []
    values = [_number(p.get("value")) for p in points if isinstance(p, dict)]
    maximum = max((v for v in values if v is not None), default=0.0)

    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Label", style="cyan")
    table.add_column("Value", justify="right")
    table.add_column("Bar", style="green")
    for point in points:
        if not isinstance(point, dict):
            continue
        value = _number(point.get("value"))
        table.add_row(
            str(point.get("label", "")),
            str(point.get("value", "")),
            _bar(value, maximum) if value is not None and value > 0 else "",
        )

    chart_type = artifact.data.get("chartType", "chart")
    return Panel(table, title=f"{artifact.title} [dim]({chart_type})[/dim]", border_style="green")


def render_framework(artifact: Artifact) -> RenderableType:
    """Framework widget (SWOT, PESTLE, ...) as a grid of sections."""
    table = Table(show_header=True, header_style="bold cyan", expand=True)
    sections = [s for s in artifact.data.get("sections") or [] if isinstance(s, dict)]
    for section in sections:
        table.add_column(str(section.get("title", "")))
    if sections:
        table.add_row(*[
            "\n".join(f"- {item}" for item in section.get("content") or [])
            for section in sections
        ])
    return Panel(table, title=artifact.title, border_style="cyan")


def render_kpi(artifact: Artifact) -> RenderableType:
    """KPI widget as a metric table."""
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_column("Change", justify="right")
    for metric in artifact.data.get("metrics") or []:
        if not isinstance(metric, dict):
            continue
        change = str(metric.get("change", ""))
        style = "red" if change.startswith("-") else "green"
        table.add_row(str(metric.get("label", "")), str(metric.get("value", "")), Text(change, style=style))
    return Panel(table, title=artifact.title, border_style="magenta")


def render_artifact(artifact: Artifact) -> RenderableType:
    """Render any artifact kind."""
    if artifact.type == ArtifactKind.CHART:
        return render_chart(artifact)
    if artifact.type == ArtifactKind.FRAMEWORK:
        return render_framework(artifact)
    if artifact.type == ArtifactKind.KPI:
        return render_kpi(artifact)
    if artifact.type == ArtifactKind.IMAGE_REQUEST:
        return Panel(Text("Visualizing strategy...", style="dim italic"), title=artifact.title, border_style="yellow")

    size_kb = len(str(artifact.data.get("base64", ""))) * 3 // 4 // 1024
    body = Text.assemble(
        ("Image ready ", "bold green"),
        (f"({artifact.data.get('mime_type', 'image')}, ~{size_kb} KB)\n", "dim"),
        (str(artifact.data.get("prompt", "")), "italic"),
    )
    return Panel(body, title=artifact.title, border_style="green")


def render_sources(metadata: GroundingMetadata) -> RenderableType:
    lines = Text()
    for chunk in metadata.grounding_chunks:
        if chunk.web is not None:
            lines.append(f"- {chunk.web.title or chunk.web.uri}\n", style="dim")
            lines.append(f"  {chunk.web.uri}\n", style="dim blue")
    return Panel(lines, title="Sources", border_style="dim")


def render_message(message: Message) -> RenderableType:
    """Render a stored message with its artifact and sources."""
    if message.role == Role.USER:
        return Panel(Text(message.content), title="You", title_align="right", border_style="dim")

    parts: list[RenderableType] = []
    if message.content:
        parts.append(Text(message.content, style="red") if message.is_error else Markdown(message.content))
    if message.artifact is not None:
        parts.append(render_artifact(message.artifact))
    if message.grounding_metadata is not None and message.grounding_metadata.grounding_chunks:
        parts.append(render_sources(message.grounding_metadata))
    return Group(*parts) if parts else Text("...", style="dim")
