"""Secondary fetch for placeholder artifacts.

Hidden design decisions:
- Which artifact kinds need a follow-up and what they resolve into
- How the resolved payload is encoded for the renderer
- Failures leave the placeholder in place instead of removing it
"""

import logging

from ..artifacts import FOLLOW_UP_KINDS, Artifact, ArtifactKind
from ..conversation.store import ConversationStore
from ..errors import FollowUpError
from ..llm.base import ImageGenerator

logger = logging.getLogger(__name__)


class FollowUpOrchestrator:
    """Resolves placeholder artifacts and splices the result into their message."""

    def __init__(self, store: ConversationStore, image_source: ImageGenerator):
        self._store = store
        self._image_source = image_source

    async def resolve_follow_up(self, artifact: Artifact) -> Artifact:
        """Fetch the resource behind a placeholder artifact.

        Args:
            artifact: Artifact from a finished stream

        Returns:
            The resolved artifact; artifacts that need no follow-up are
            returned unchanged

        Raises:
            FollowUpError: If the secondary fetch fails or returns nothing
        """
        if not artifact.needs_follow_up:
            return artifact

        if artifact.type == ArtifactKind.IMAGE_REQUEST:
            return await self._resolve_image(artifact)

        raise FollowUpError(f"no resolver for {artifact.type.value}")

    async def _resolve_image(self, artifact: Artifact) -> Artifact:
        prompt = str(artifact.data.get("prompt") or artifact.title).strip()
        if not prompt:
            raise FollowUpError("image request has no prompt")

        try:
            image = await self._image_source.generate_image(prompt)
        except Exception as e:
            raise FollowUpError(str(e), prompt=prompt) from e

        if image is None or not image.data:
            raise FollowUpError("image service returned no image", prompt=prompt)

        return Artifact(
            type=FOLLOW_UP_KINDS[artifact.type],
            title=artifact.title,
            data={
                "prompt": prompt,
                "mime_type": image.mime_type,
                "base64": image.to_data_url(),
            },
        )

    async def run(self, message_id: str, artifact: Artifact) -> bool:
        """Resolve a placeholder and write the result into its message.

        Args:
            message_id: Message that carries the placeholder
            artifact: The placeholder artifact

        Returns:
            True if the message now carries the resolved artifact; False if
            the fetch failed (placeholder kept) or the message is gone
        """
        try:
            resolved = await self.resolve_follow_up(artifact)
        except FollowUpError as e:
            logger.warning("Keeping placeholder on message %s: %s", message_id, e)
            return False

        return self._store.update_by_id(message_id, artifact=resolved)
