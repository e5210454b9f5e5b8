# reference_store.py

import json
import logging
from typing import List, Optional

from pydantic import ValidationError

import config
from models import FallbackArchetype, TypicalCost

logger = logging.getLogger(__name__)

# Used when the fallback corpus is missing or unreadable, so the pipeline always has something plausible to offer.
GENERIC_ARCHETYPE = FallbackArchetype(
    service_type="generic",
    units=1,
    billed_amount=500,
    typical_cost=TypicalCost(min=200, median=350, max=600),
)


class ReferenceDataError(RuntimeError):
    """Raised when the reference cost table cannot be loaded."""


class CostReferenceStore:
    """
    Holds the reference cost table and the fallback archetype corpus.

    Both are loaded once on construction and never modified afterwards, so a
    single store can be shared between concurrent analysis runs.
    """

    def __init__(self, mappings_path: Optional[str] = None, fallback_path: Optional[str] = None):
        self.mappings_path = mappings_path or config.MAPPINGS_PATH
        self.fallback_path = fallback_path or config.FALLBACK_DATA_PATH
        self._reference_table = self._load_reference_table(self.mappings_path)
        self._archetypes = tuple(self._load_archetypes(self.fallback_path))

    @property
    def reference_table(self) -> str:
        """The code-to-cost table as raw text. It is injected into prompts, never parsed here."""
        return self._reference_table

    @property
    def archetypes(self) -> List[FallbackArchetype]:
        return list(self._archetypes)

    @staticmethod
    def _load_reference_table(path: str) -> str:
        try:
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            raise ReferenceDataError(f"Could not load reference cost table at {path}: {e}") from e
        logger.info("Loaded reference cost table from %s (%d characters)", path, len(text))
        return text

    @staticmethod
    def _load_archetypes(path: str) -> List[FallbackArchetype]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                payload = json.load(f)
            records = payload["fallbackResponses"]
            archetypes = [FallbackArchetype.model_validate(record) for record in records]
        except FileNotFoundError:
            logger.warning("Fallback corpus not found at %s. Using a single generic archetype.", path)
            return [GENERIC_ARCHETYPE]
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValidationError) as e:
            logger.warning("Fallback corpus at %s is unusable (%s). Using a single generic archetype.", path, e)
            return [GENERIC_ARCHETYPE]

        if not archetypes:
            logger.warning("Fallback corpus at %s is empty. Using a single generic archetype.", path)
            return [GENERIC_ARCHETYPE]

        logger.info("Loaded %d fallback archetypes from %s", len(archetypes), path)
        return archetypes
