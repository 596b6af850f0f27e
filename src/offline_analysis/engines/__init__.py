from .base import TextExtractionEngine
from .pypdfium2_engine import Pypdfium2TextEngine

__all__ = ["Pypdfium2TextEngine", "TextExtractionEngine"]
