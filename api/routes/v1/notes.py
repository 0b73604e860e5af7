"""
api/routes/v1/notes.py -- Personal notes REST endpoints.

Routes:
  GET    /api/v1/notes        -- the caller's notes, newest first
  POST   /api/v1/notes        -- create; 201
  GET    /api/v1/notes/{id}   -- one of the caller's notes
  PUT    /api/v1/notes/{id}   -- replace title and description
  DELETE /api/v1/notes/{id}   -- delete; 204

IDOR guard: every store call passes claims.identity_id, and the store's
WHERE clause requires it to match. Someone else's note is a 404, never a 403,
so note IDs cannot be probed. Admins get no extra reach here.
"""

from fastapi import APIRouter, Depends, Request, Response

from api.errors import error_for_reason
from api.models import NoteCreate, NoteResponse, NoteUpdate
from auth.dependencies import require_member
from auth.models import Claims
from core.errors import ErrorReason
from notes.models import Note
from notes.store import NoteStore

# Auth policy:
# - all routes: role User or Admin (require_member), scoped to the caller's own notes
router = APIRouter()

_NOT_FOUND_MSG = "Note not found."


def _store(request: Request) -> NoteStore:
    return request.app.state.note_store


@router.get("/notes", response_model=list[NoteResponse])
def list_notes(request: Request, claims: Claims = Depends(require_member)) -> list[NoteResponse]:
    return [NoteResponse.from_note(n) for n in _store(request).list_notes(claims.identity_id)]


@router.post("/notes", response_model=NoteResponse, status_code=201)
def create_note(request: Request, body: NoteCreate, claims: Claims = Depends(require_member)) -> NoteResponse:
    store = _store(request)
    note_id = store.create_note(Note(title=body.title, description=body.description, owner_id=claims.identity_id))
    return NoteResponse.from_note(store.get_note(note_id, claims.identity_id))


@router.get("/notes/{note_id}", response_model=NoteResponse)
def get_note(request: Request, note_id: int, claims: Claims = Depends(require_member)) -> NoteResponse:
    note = _store(request).get_note(note_id, claims.identity_id)
    if note is None:
        raise error_for_reason(ErrorReason.NOT_FOUND, _NOT_FOUND_MSG)
    return NoteResponse.from_note(note)


@router.put("/notes/{note_id}", response_model=NoteResponse)
def update_note(
    request: Request,
    note_id: int,
    body: NoteUpdate,
    claims: Claims = Depends(require_member),
) -> NoteResponse:
    store = _store(request)
    if not store.update_note(note_id, claims.identity_id, body.title, body.description):
        raise error_for_reason(ErrorReason.NOT_FOUND, _NOT_FOUND_MSG)
    return NoteResponse.from_note(store.get_note(note_id, claims.identity_id))


@router.delete("/notes/{note_id}", status_code=204)
def delete_note(request: Request, note_id: int, claims: Claims = Depends(require_member)) -> Response:
    if not _store(request).delete_note(note_id, claims.identity_id):
        raise error_for_reason(ErrorReason.NOT_FOUND, _NOT_FOUND_MSG)
    return Response(status_code=204)
