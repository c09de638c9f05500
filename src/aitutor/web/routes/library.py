"""Flashcard library endpoints: folders, sets and cards."""

from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from aitutor.core.flashcard_generator import (
    FlashcardGenerationError,
    generate_flashcards,
    to_flashcards,
)
from aitutor.core.library_repository import (
    Library,
    LibraryError,
    library_transaction,
    load_library,
)
from aitutor.core.models import Flashcard, FlashcardSet, Folder
from aitutor.core.usage import LimitDecision, check_limit
from aitutor.core.user_repository import load_users_state
from aitutor.llm.client import LLMClient, LLMError
from aitutor.utils.text_utils import unique_id
from aitutor.web.dependencies import get_llm_client, get_state_dir, require_user
from aitutor.web.schemas import (
    CardInput,
    CardResponse,
    CardUpdate,
    FolderCreate,
    FolderListResponse,
    FolderResponse,
    FolderUpdate,
    SetCreate,
    SetGenerate,
    SetListResponse,
    SetMove,
    SetResponse,
    SetUpdate,
)

router = APIRouter(
    prefix="/api/users/{user_id}",
    tags=["library"],
    dependencies=[Depends(require_user)],
)


def _folder_response(folder: Folder) -> FolderResponse:
    return FolderResponse(**folder.to_dict())


def _set_response(flashcard_set: FlashcardSet) -> SetResponse:
    return SetResponse(**flashcard_set.to_dict())


def _not_found(what: str, record_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"{what} '{record_id}' not found",
    )


def _limit_reached(decision: LimitDecision) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"error": decision.title, "details": decision.description},
    )


def _check_user_limit(user_id: str, feature: str, current_count: int, state_dir: Path) -> LimitDecision:
    """Limit decision for an existing user (404 if unknown)."""
    user = load_users_state(state_dir).get_user(user_id)
    if user is None:
        raise _not_found("User", user_id)
    return check_limit(user, feature, current_count=current_count)


def _cards_from_input(cards: list[CardInput]) -> list[Flashcard]:
    result: list[Flashcard] = []
    ids: set[str] = set()
    for card in cards:
        card_id = unique_id("card", ids)
        ids.add(card_id)
        result.append(Flashcard(id=card_id, front=card.front, back=card.back, mastered=card.mastered))
    return result


def _require_set(library: Library, set_id: str) -> FlashcardSet:
    flashcard_set = library.get_set(set_id)
    if flashcard_set is None:
        raise _not_found("Set", set_id)
    return flashcard_set


# =============================================================================
# FOLDERS
# =============================================================================


@router.get("/folders", response_model=FolderListResponse)
async def list_folders(user_id: str, state_dir: Path = Depends(get_state_dir)) -> FolderListResponse:
    folders = [_folder_response(f) for f in load_library(user_id, state_dir).folders]
    return FolderListResponse(folders=folders, count=len(folders))


@router.post("/folders", response_model=FolderResponse, status_code=status.HTTP_201_CREATED)
async def create_folder(
    user_id: str,
    folder_data: FolderCreate,
    state_dir: Path = Depends(get_state_dir),
):
    """Create a folder (free tier: limited number of folders)."""
    with library_transaction(user_id, state_dir) as library:
        decision = _check_user_limit(user_id, "folders", len(library.folders), state_dir)
        if not decision.allowed:
            return _limit_reached(decision)
        folder = library.create_folder(folder_data.name, folder_data.description, folder_data.tags)
    return _folder_response(folder)


@router.get("/folders/{folder_id}", response_model=FolderResponse)
async def get_folder(
    user_id: str,
    folder_id: str,
    state_dir: Path = Depends(get_state_dir),
) -> FolderResponse:
    folder = load_library(user_id, state_dir).get_folder(folder_id)
    if folder is None:
        raise _not_found("Folder", folder_id)
    return _folder_response(folder)


@router.patch("/folders/{folder_id}", response_model=FolderResponse)
async def update_folder(
    user_id: str,
    folder_id: str,
    changes: FolderUpdate,
    state_dir: Path = Depends(get_state_dir),
) -> FolderResponse:
    with library_transaction(user_id, state_dir) as library:
        folder = library.update_folder(folder_id, changes.name, changes.description, changes.tags)
        if folder is None:
            raise _not_found("Folder", folder_id)
    return _folder_response(folder)


@router.delete("/folders/{folder_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_folder(
    user_id: str,
    folder_id: str,
    state_dir: Path = Depends(get_state_dir),
) -> None:
    """Delete a folder together with the sets inside it."""
    with library_transaction(user_id, state_dir) as library:
        if not library.delete_folder(folder_id):
            raise _not_found("Folder", folder_id)


@router.get("/folders/{folder_id}/sets", response_model=SetListResponse)
async def list_folder_sets(
    user_id: str,
    folder_id: str,
    state_dir: Path = Depends(get_state_dir),
) -> SetListResponse:
    library = load_library(user_id, state_dir)
    if library.get_folder(folder_id) is None:
        raise _not_found("Folder", folder_id)
    sets = [_set_response(s) for s in library.sets_in_folder(folder_id)]
    return SetListResponse(sets=sets, count=len(sets))


# =============================================================================
# SETS
# =============================================================================


@router.get("/sets", response_model=SetListResponse)
async def list_sets(user_id: str, state_dir: Path = Depends(get_state_dir)) -> SetListResponse:
    sets = [_set_response(s) for s in load_library(user_id, state_dir).sets]
    return SetListResponse(sets=sets, count=len(sets))


@router.post("/sets", response_model=SetResponse, status_code=status.HTTP_201_CREATED)
async def create_set(
    user_id: str,
    set_data: SetCreate,
    state_dir: Path = Depends(get_state_dir),
):
    """Create a set from cards written by the learner."""
    with library_transaction(user_id, state_dir) as library:
        decision = _check_user_limit(user_id, "flashcard_sets", len(library.sets), state_dir)
        if not decision.allowed:
            return _limit_reached(decision)

        try:
            flashcard_set = library.create_set(
                title=set_data.title,
                description=set_data.description,
                cards=_cards_from_input(set_data.cards),
                folder_id=set_data.folderId,
            )
        except LibraryError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return _set_response(flashcard_set)


@router.post("/sets/generate", response_model=SetResponse, status_code=status.HTTP_201_CREATED)
def generate_set(
    user_id: str,
    request: SetGenerate,
    client: LLMClient = Depends(get_llm_client),
    state_dir: Path = Depends(get_state_dir),
):
    """Generate cards about a topic and save them as a new set.

    Limit and folder are checked before the LLM call and again against a
    fresh copy of the library afterwards.
    """
    library = load_library(user_id, state_dir)
    decision = _check_user_limit(user_id, "flashcard_sets", len(library.sets), state_dir)
    if not decision.allowed:
        return _limit_reached(decision)
    if request.folderId and library.get_folder(request.folderId) is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Folder '{request.folderId}' not found",
        )

    try:
        cards = generate_flashcards(request.topic, client, count=request.count)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except (LLMError, FlashcardGenerationError) as e:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to generate flashcards", "details": str(e)},
        )

    with library_transaction(user_id, state_dir) as library:
        decision = _check_user_limit(user_id, "flashcard_sets", len(library.sets), state_dir)
        if not decision.allowed:
            return _limit_reached(decision)
        try:
            flashcard_set = library.create_set(
                title=request.title or request.topic,
                description=request.description,
                cards=to_flashcards(cards),
                folder_id=request.folderId,
            )
        except LibraryError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return _set_response(flashcard_set)


@router.get("/sets/{set_id}", response_model=SetResponse)
async def get_set(user_id: str, set_id: str, state_dir: Path = Depends(get_state_dir)) -> SetResponse:
    return _set_response(_require_set(load_library(user_id, state_dir), set_id))


@router.patch("/sets/{set_id}", response_model=SetResponse)
async def update_set(
    user_id: str,
    set_id: str,
    changes: SetUpdate,
    state_dir: Path = Depends(get_state_dir),
) -> SetResponse:
    """Update a set's title, description or full card list."""
    cards = None
    if changes.cards is not None:
        cards = [Flashcard(id=c.id, front=c.front, back=c.back, mastered=c.mastered) for c in changes.cards]

    with library_transaction(user_id, state_dir) as library:
        flashcard_set = library.update_set(set_id, changes.title, changes.description, cards)
        if flashcard_set is None:
            raise _not_found("Set", set_id)
    return _set_response(flashcard_set)


@router.put("/sets/{set_id}/folder", response_model=SetResponse)
async def move_set(
    user_id: str,
    set_id: str,
    move: SetMove,
    state_dir: Path = Depends(get_state_dir),
) -> SetResponse:
    """Move a set into a folder, or out of folders with a null folderId."""
    with library_transaction(user_id, state_dir) as library:
        try:
            flashcard_set = library.move_set(set_id, move.folderId)
        except LibraryError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        if flashcard_set is None:
            raise _not_found("Set", set_id)
    return _set_response(flashcard_set)


@router.delete("/sets/{set_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_set(user_id: str, set_id: str, state_dir: Path = Depends(get_state_dir)) -> None:
    with library_transaction(user_id, state_dir) as library:
        if not library.delete_set(set_id):
            raise _not_found("Set", set_id)


# =============================================================================
# CARDS
# =============================================================================


@router.post(
    "/sets/{set_id}/cards",
    response_model=CardResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_card(
    user_id: str,
    set_id: str,
    card_data: CardInput,
    state_dir: Path = Depends(get_state_dir),
) -> CardResponse:
    with library_transaction(user_id, state_dir) as library:
        card = library.add_card(set_id, card_data.front, card_data.back)
        if card is None:
            raise _not_found("Set", set_id)
        if card_data.mastered:
            card.mastered = True
    return CardResponse(**card.to_dict())


@router.patch("/sets/{set_id}/cards/{card_id}", response_model=CardResponse)
async def update_card(
    user_id: str,
    set_id: str,
    card_id: str,
    changes: CardUpdate,
    state_dir: Path = Depends(get_state_dir),
) -> CardResponse:
    """Edit a card or flip its mastered flag."""
    with library_transaction(user_id, state_dir) as library:
        _require_set(library, set_id)
        card = library.update_card(set_id, card_id, changes.front, changes.back, changes.mastered)
        if card is None:
            raise _not_found("Card", card_id)
    return CardResponse(**card.to_dict())


@router.delete("/sets/{set_id}/cards/{card_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_card(
    user_id: str,
    set_id: str,
    card_id: str,
    state_dir: Path = Depends(get_state_dir),
) -> None:
    with library_transaction(user_id, state_dir) as library:
        _require_set(library, set_id)
        if not library.delete_card(set_id, card_id):
            raise _not_found("Card", card_id)


@router.post("/sets/{set_id}/cards/{card_id}/mastered", response_model=CardResponse)
async def mark_card_mastered(
    user_id: str,
    set_id: str,
    card_id: str,
    mastered: bool = True,
    state_dir: Path = Depends(get_state_dir),
) -> CardResponse:
    """Mark a card as mastered (``?mastered=false`` to undo)."""
    with library_transaction(user_id, state_dir) as library:
        _require_set(library, set_id)
        card = library.set_card_mastered(set_id, card_id, mastered)
        if card is None:
            raise _not_found("Card", card_id)
    return CardResponse(**card.to_dict())
