from .gemini import GeminiProvider
from .simulated import SimulatedProvider

__all__ = ["GeminiProvider", "SimulatedProvider"]
