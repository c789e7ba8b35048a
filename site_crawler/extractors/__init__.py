from .base import ExtractResult, Extractor, Item, ItemStatus
from .selectors import SelectorExtractor

__all__ = ["ExtractResult", "Extractor", "Item", "ItemStatus", "SelectorExtractor"]
