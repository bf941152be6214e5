"""笔记接口。

所有读写都按当前用户过滤；访问他人笔记与笔记不存在一样返回 404。
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from secure_notes_api.db.session import get_db
from secure_notes_api.dependencies import get_current_user
from secure_notes_api.models.note import Note
from secure_notes_api.models.user import User
from secure_notes_api.schemas.common import ErrorResponse, SuccessResponse
from secure_notes_api.schemas.note import NoteCreateRequest, NoteUpdateRequest
from secure_notes_api.schemas.responses import NoteData, NoteDeleteData
from secure_notes_api.utils.response import success

router = APIRouter(prefix="/notes", tags=["notes"])


def _note_data(note: Note) -> dict:
    return {
        "id": note.id,
        "title": note.title,
        "content": note.content,
        "tags": list(note.tags or []),
        "created_at": note.created_at,
        "updated_at": note.updated_at,
    }


def _get_owned_note(db: Session, *, note_id: UUID, user_id: UUID) -> Note:
    """读取当前用户名下的笔记，不存在时抛 404。"""
    note = db.execute(select(Note).where(Note.id == note_id).where(Note.user_id == user_id)).scalar_one_or_none()
    if note is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "NOTE_NOT_FOUND", "message": "Note not found"},
        )
    return note


@router.get(
    "",
    summary="查询笔记列表",
    description="按最近更新时间倒序返回当前用户的全部笔记。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[NoteData]],
    responses={401: {"model": ErrorResponse}},
)
def list_notes(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notes = (
        db.execute(select(Note).where(Note.user_id == user.id).order_by(Note.updated_at.desc(), Note.id))
        .scalars()
        .all()
    )
    return success(request, [_note_data(note) for note in notes], meta={"total": len(notes)})


@router.post(
    "",
    summary="创建笔记",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[NoteData],
    responses={401: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def create_note(
    payload: NoteCreateRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    note = Note(user_id=user.id, title=payload.title, content=payload.content, tags=payload.tags)
    db.add(note)
    db.commit()
    db.refresh(note)
    return success(request, _note_data(note))


@router.put(
    "/{note_id}",
    summary="更新笔记",
    description="只更新请求中提供的字段。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[NoteData],
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def update_note(
    payload: NoteUpdateRequest,
    request: Request,
    note_id: UUID = Path(..., description="笔记 ID。"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    note = _get_owned_note(db, note_id=note_id, user_id=user.id)
    if payload.title is not None:
        note.title = payload.title
    if payload.content is not None:
        note.content = payload.content
    if payload.tags is not None:
        note.tags = payload.tags
    db.commit()
    db.refresh(note)
    return success(request, _note_data(note))


@router.delete(
    "/{note_id}",
    summary="删除笔记",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[NoteDeleteData],
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def delete_note(
    request: Request,
    note_id: UUID = Path(..., description="笔记 ID。"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    note = _get_owned_note(db, note_id=note_id, user_id=user.id)
    db.delete(note)
    db.commit()
    return success(request, {"id": note_id, "deleted": True})
