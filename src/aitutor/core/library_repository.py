"""Flashcard library repository.

Responsibilities:
- Persist a learner's folders and flashcard sets to
  state/users/{user_id}/library_v1.json
- Keep Folder.setIds and FlashcardSet.folderId consistent
- Migrate the legacy flat card list (flashcards.json) into one set

Output structure (JSON):
- library_v1 schema: {"$schema", "folders": [...], "sets": [...]}
- Ids: folder-{epoch_ms}, set-{epoch_ms}, card-{epoch_ms}
"""

from __future__ import annotations

import json
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from aitutor.config.app_config import load_app_config
from aitutor.core.models import Flashcard, FlashcardSet, Folder
from aitutor.utils.text_utils import make_id, unique_id

logger = structlog.get_logger(__name__)

LIBRARY_SCHEMA = "library_v1"
LIBRARY_FILENAME = "library_v1.json"
LEGACY_FLASHCARDS_FILENAME = "flashcards.json"

MIGRATED_SET_TITLE = "General Flashcards"
MIGRATED_SET_DESCRIPTION = "Imported from previous version"

_library_lock = threading.RLock()


class LibraryError(Exception):
    """Invalid library operation (e.g. unknown folder reference)."""

    pass


# =============================================================================
# LIBRARY STATE
# =============================================================================


@dataclass
class Library:
    """A learner's folders and flashcard sets."""

    folders: list[Folder] = field(default_factory=list)
    sets: list[FlashcardSet] = field(default_factory=list)

    # -- folders ------------------------------------------------------------

    def get_folder(self, folder_id: str) -> Folder | None:
        for folder in self.folders:
            if folder.id == folder_id:
                return folder
        return None

    def create_folder(
        self,
        name: str,
        description: str = "",
        tags: list[str] | None = None,
    ) -> Folder:
        """Add an empty folder."""
        folder = Folder(
            id=unique_id("folder", {f.id for f in self.folders}),
            name=name,
            description=description,
            tags=list(tags or []),
        )
        self.folders.append(folder)
        return folder

    def update_folder(
        self,
        folder_id: str,
        name: str | None = None,
        description: str | None = None,
        tags: list[str] | None = None,
    ) -> Folder | None:
        """Update folder fields that are not None. Returns None if not found."""
        folder = self.get_folder(folder_id)
        if folder is None:
            return None
        if name is not None:
            folder.name = name
        if description is not None:
            folder.description = description
        if tags is not None:
            folder.tags = list(tags)
        return folder

    def delete_folder(self, folder_id: str) -> bool:
        """Delete a folder and every set inside it. Returns True if removed."""
        folder = self.get_folder(folder_id)
        if folder is None:
            return False

        self.folders.remove(folder)
        before = len(self.sets)
        self.sets = [s for s in self.sets if s.folder_id != folder_id]

        logger.info(
            "folder_deleted",
            folder_id=folder_id,
            sets_deleted=before - len(self.sets),
        )
        return True

    # -- sets ---------------------------------------------------------------

    def get_set(self, set_id: str) -> FlashcardSet | None:
        for flashcard_set in self.sets:
            if flashcard_set.id == set_id:
                return flashcard_set
        return None

    def sets_in_folder(self, folder_id: str | None) -> list[FlashcardSet]:
        """Sets in a folder (None: sets not in any folder)."""
        return [s for s in self.sets if s.folder_id == folder_id]

    def _require_folder(self, folder_id: str) -> Folder:
        folder = self.get_folder(folder_id)
        if folder is None:
            raise LibraryError(f"Folder '{folder_id}' not found")
        return folder

    def create_set(
        self,
        title: str = "",
        description: str = "",
        cards: list[Flashcard] | None = None,
        folder_id: str | None = None,
    ) -> FlashcardSet:
        """Add a set, optionally inside an existing folder.

        Raises:
            LibraryError: If folder_id does not exist
        """
        folder = self._require_folder(folder_id) if folder_id else None

        flashcard_set = FlashcardSet(
            id=unique_id("set", {s.id for s in self.sets}),
            title=title or "Untitled Set",
            description=description,
            cards=list(cards or []),
            folder_id=folder_id,
        )
        self.sets.append(flashcard_set)
        if folder is not None:
            folder.set_ids.append(flashcard_set.id)
        return flashcard_set

    def update_set(
        self,
        set_id: str,
        title: str | None = None,
        description: str | None = None,
        cards: list[Flashcard] | None = None,
    ) -> FlashcardSet | None:
        """Update set fields that are not None. Returns None if not found."""
        flashcard_set = self.get_set(set_id)
        if flashcard_set is None:
            return None
        if title is not None:
            flashcard_set.title = title or "Untitled Set"
        if description is not None:
            flashcard_set.description = description
        if cards is not None:
            flashcard_set.cards = list(cards)
        return flashcard_set

    def move_set(self, set_id: str, folder_id: str | None) -> FlashcardSet | None:
        """Move a set into a folder, or out of any folder with None.

        Raises:
            LibraryError: If folder_id does not exist
        """
        flashcard_set = self.get_set(set_id)
        if flashcard_set is None:
            return None

        target = self._require_folder(folder_id) if folder_id else None

        if flashcard_set.folder_id:
            current = self.get_folder(flashcard_set.folder_id)
            if current is not None and set_id in current.set_ids:
                current.set_ids.remove(set_id)

        flashcard_set.folder_id = folder_id
        if target is not None and set_id not in target.set_ids:
            target.set_ids.append(set_id)
        return flashcard_set

    def delete_set(self, set_id: str) -> bool:
        """Delete a set and unlink it from its folder. Returns True if removed."""
        flashcard_set = self.get_set(set_id)
        if flashcard_set is None:
            return False

        self.sets.remove(flashcard_set)
        for folder in self.folders:
            if set_id in folder.set_ids:
                folder.set_ids.remove(set_id)
        return True

    # -- cards --------------------------------------------------------------

    def add_card(self, set_id: str, front: str, back: str = "") -> Flashcard | None:
        """Append a card to a set. Returns None if the set is missing."""
        flashcard_set = self.get_set(set_id)
        if flashcard_set is None:
            return None
        card = Flashcard(
            id=unique_id("card", {c.id for c in flashcard_set.cards}),
            front=front,
            back=back,
        )
        flashcard_set.cards.append(card)
        return card

    def update_card(
        self,
        set_id: str,
        card_id: str,
        front: str | None = None,
        back: str | None = None,
        mastered: bool | None = None,
    ) -> Flashcard | None:
        """Update card fields that are not None. Returns None if not found."""
        flashcard_set = self.get_set(set_id)
        card = flashcard_set.get_card(card_id) if flashcard_set else None
        if card is None:
            return None
        if front is not None:
            card.front = front
        if back is not None:
            card.back = back
        if mastered is not None:
            card.mastered = mastered
        return card

    def set_card_mastered(self, set_id: str, card_id: str, mastered: bool = True) -> Flashcard | None:
        return self.update_card(set_id, card_id, mastered=mastered)

    def delete_card(self, set_id: str, card_id: str) -> bool:
        flashcard_set = self.get_set(set_id)
        card = flashcard_set.get_card(card_id) if flashcard_set else None
        if card is None:
            return False
        flashcard_set.cards.remove(card)
        return True

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "$schema": LIBRARY_SCHEMA,
            "folders": [f.to_dict() for f in self.folders],
            "sets": [s.to_dict() for s in self.sets],
        }


# =============================================================================
# PERSISTENCE
# =============================================================================


def user_state_dir(user_id: str, state_dir: Path | None = None) -> Path:
    """Directory holding one user's library and chats.

    Raises:
        ValueError: If user_id is not a single plain path segment
    """
    if not user_id or user_id in (".", "..") or Path(user_id).name != user_id or "\\" in user_id:
        raise ValueError(f"Invalid user id: {user_id!r}")
    if state_dir is None:
        state_dir = load_app_config().state_dir
    return state_dir / "users" / user_id


def _migrate_legacy_flashcards(legacy_path: Path) -> Library | None:
    """Turn a legacy flat card list into a library with one set."""
    try:
        with open(legacy_path, encoding="utf-8") as f:
            legacy_cards = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.error("legacy_flashcards_migration_failed", error=str(e))
        return None

    if not isinstance(legacy_cards, list) or not legacy_cards:
        return None

    cards = []
    for i, item in enumerate(legacy_cards):
        if not isinstance(item, dict):
            continue
        item.setdefault("id", f"card-migrated-{i}")
        cards.append(Flashcard.from_dict(item))

    migrated = FlashcardSet(
        id=make_id("set-migrated"),
        title=MIGRATED_SET_TITLE,
        description=MIGRATED_SET_DESCRIPTION,
        cards=cards,
    )
    return Library(sets=[migrated])


def load_library(user_id: str, state_dir: Path | None = None) -> Library:
    """Load a user's library from disk.

    If library_v1.json doesn't exist but a legacy flashcards.json does,
    migrates the flat card list into a single set and saves it.

    Returns:
        Library (empty if missing or corrupted)
    """
    user_dir = user_state_dir(user_id, state_dir)
    library_path = user_dir / LIBRARY_FILENAME
    legacy_path = user_dir / LEGACY_FLASHCARDS_FILENAME

    if library_path.exists():
        try:
            with open(library_path, encoding="utf-8") as f:
                data = json.load(f)

            if not isinstance(data, dict) or data.get("$schema") != LIBRARY_SCHEMA:
                logger.warning(
                    "library_invalid_schema",
                    expected=LIBRARY_SCHEMA,
                    got=data.get("$schema") if isinstance(data, dict) else type(data).__name__,
                )
                return Library()

            return Library(
                folders=[Folder.from_dict(f) for f in data.get("folders", [])],
                sets=[FlashcardSet.from_dict(s) for s in data.get("sets", [])],
            )

        except (json.JSONDecodeError, OSError, AttributeError, KeyError, TypeError, ValueError) as e:
            logger.error("library_load_failed", user_id=user_id, error=str(e))
            return Library()

    if legacy_path.exists():
        logger.info("migrating_legacy_flashcards", user_id=user_id)
        library = _migrate_legacy_flashcards(legacy_path)
        if library is not None:
            save_library(user_id, library, state_dir)
            logger.info("migration_complete", user_id=user_id, cards=len(library.sets[0].cards))
            return library

    return Library()


def save_library(user_id: str, library: Library, state_dir: Path | None = None) -> Path:
    """Persist a user's library.

    Returns:
        Path to saved library file
    """
    user_dir = user_state_dir(user_id, state_dir)
    user_dir.mkdir(parents=True, exist_ok=True)
    library_path = user_dir / LIBRARY_FILENAME

    with open(library_path, "w", encoding="utf-8") as f:
        json.dump(library.to_dict(), f, indent=2, ensure_ascii=False)

    logger.debug(
        "library_saved",
        path=str(library_path),
        folders=len(library.folders),
        sets=len(library.sets),
    )
    return library_path


@contextmanager
def library_transaction(user_id: str, state_dir: Path | None = None) -> Iterator[Library]:
    """Load a user's library, yield it for changes, then save.

    Serialized within the process; nothing is saved if the block raises.
    """
    with _library_lock:
        library = load_library(user_id, state_dir)
        yield library
        save_library(user_id, library, state_dir)
