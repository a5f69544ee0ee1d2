"""
Content registry.

The seam through which the content collaborator makes items and knowledge
units known to the review core. The core never edits content itself.

Import file format (JSON):

    {
      "knowledge_units": [
        {"id": "ku-osi", "name": "OSI model", "p_slip": 0.1}
      ],
      "items": [
        {"id": "fc-1", "kind": "flashcard", "front": "...", "back": "...",
         "knowledge_unit_id": "ku-osi"}
      ]
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from memora.core.errors import InvalidItemKind, NotFoundError, PersistenceError, ValidationError
from memora.core.review_log import ItemKind
from memora.db.database import Database
from memora.db.models import Item, KnowledgeUnit

_SEED_FIELDS = ("p_init", "p_slip", "p_guess", "p_transit")


@dataclass
class ImportResult:
    knowledge_units: int = 0
    items: int = 0


def parse_item_kind(kind: str) -> ItemKind:
    try:
        return ItemKind(kind)
    except ValueError:
        raise InvalidItemKind(
            f"Invalid item kind: {kind!r}. Must be 'flashcard' or 'quiz'"
        ) from None


class ContentRegistry:
    """Create or replace items and knowledge units."""

    def __init__(self, db: Database):
        self.db = db

    def register_knowledge_unit(
        self,
        unit_id: str,
        name: str = "",
        *,
        p_init: float | None = None,
        p_slip: float | None = None,
        p_guess: float | None = None,
        p_transit: float | None = None,
    ) -> None:
        seeds = {"p_init": p_init, "p_slip": p_slip, "p_guess": p_guess, "p_transit": p_transit}
        for field_name, value in seeds.items():
            if value is not None and not 0.0 <= value <= 1.0:
                raise ValidationError(f"{field_name} must be in [0, 1], got {value}")

        try:
            with self.db.session_scope() as session:
                session.merge(KnowledgeUnit(id=unit_id, name=name, **seeds))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not register knowledge unit {unit_id}: {e}") from e
        logger.debug(f"Registered knowledge unit {unit_id}")

    def register_item(
        self,
        item_id: str,
        kind: str,
        front: str = "",
        back: str = "",
        knowledge_unit_id: str | None = None,
    ) -> None:
        item_kind = parse_item_kind(kind)
        try:
            with self.db.session_scope() as session:
                if knowledge_unit_id and session.get(KnowledgeUnit, knowledge_unit_id) is None:
                    raise NotFoundError("Knowledge unit", knowledge_unit_id)
                session.merge(
                    Item(
                        id=item_id,
                        kind=item_kind.value,
                        front=front,
                        back=back,
                        knowledge_unit_id=knowledge_unit_id,
                    )
                )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not register item {item_id}: {e}") from e
        logger.debug(f"Registered {item_kind.value} {item_id}")

    def import_document(self, document: dict[str, Any]) -> ImportResult:
        """Register everything in a parsed import document, units first."""
        result = ImportResult()
        for unit in document.get("knowledge_units", []):
            if "id" not in unit:
                raise ValidationError("Knowledge unit entry is missing 'id'")
            self.register_knowledge_unit(
                unit["id"],
                unit.get("name", ""),
                **{key: unit.get(key) for key in _SEED_FIELDS},
            )
            result.knowledge_units += 1

        for item in document.get("items", []):
            if "id" not in item or "kind" not in item:
                raise ValidationError("Item entry needs 'id' and 'kind'")
            self.register_item(
                item["id"],
                item["kind"],
                item.get("front", ""),
                item.get("back", ""),
                item.get("knowledge_unit_id"),
            )
            result.items += 1

        logger.info(
            f"Imported {result.knowledge_units} knowledge units and {result.items} items"
        )
        return result

    def import_file(self, path: Path) -> ImportResult:
        if not path.exists():
            raise NotFoundError("Import file", str(path))
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValidationError(f"Import file is not valid JSON: {e}") from e
        return self.import_document(document)
