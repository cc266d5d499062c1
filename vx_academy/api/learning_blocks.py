from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from vx_academy.database import get_db
from vx_academy.dependencies import can_manage_learning_blocks, get_current_active_user
from vx_academy.models.course import LearningBlock, Unit
from vx_academy.models.user import User
from vx_academy.schemas.common import MessageResponse
from vx_academy.schemas.course import LearningBlockCreate, LearningBlockResponse, LearningBlockUpdate

router = APIRouter()


def _get_block(db: Session, block_id: int) -> LearningBlock:
    block = db.query(LearningBlock).filter(LearningBlock.id == block_id).first()
    if not block:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Learning block not found"
        )
    return block


def _require_unit(db: Session, unit_id: int) -> None:
    if not db.query(Unit).filter(Unit.id == unit_id).first():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Unit not found"
        )


@router.get("", response_model=List[LearningBlockResponse])
async def get_learning_blocks(
    unit_id: Optional[int] = None,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    query = db.query(LearningBlock)
    if unit_id is not None:
        query = query.filter(LearningBlock.unit_id == unit_id)
    return query.order_by(LearningBlock.unit_id, LearningBlock.order).all()


@router.post("", response_model=LearningBlockResponse, status_code=status.HTTP_201_CREATED)
async def create_learning_block(
    block_data: LearningBlockCreate,
    current_user: User = Depends(can_manage_learning_blocks),
    db: Session = Depends(get_db)
) -> Any:
    _require_unit(db, block_data.unit_id)
    block = LearningBlock(**block_data.model_dump())
    db.add(block)
    db.commit()
    db.refresh(block)
    return block


@router.get("/{block_id}", response_model=LearningBlockResponse)
async def get_learning_block(
    block_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
) -> Any:
    return _get_block(db, block_id)


@router.patch("/{block_id}", response_model=LearningBlockResponse)
async def update_learning_block(
    block_id: int,
    block_data: LearningBlockUpdate,
    current_user: User = Depends(can_manage_learning_blocks),
    db: Session = Depends(get_db)
) -> Any:
    block = _get_block(db, block_id)
    update_data = block_data.model_dump(exclude_unset=True)
    if "unit_id" in update_data:
        _require_unit(db, update_data["unit_id"])
    for field, value in update_data.items():
        setattr(block, field, value)
    db.commit()
    db.refresh(block)
    return block


@router.delete("/{block_id}", response_model=MessageResponse)
async def delete_learning_block(
    block_id: int,
    current_user: User = Depends(can_manage_learning_blocks),
    db: Session = Depends(get_db)
) -> Any:
    block = _get_block(db, block_id)
    db.delete(block)
    db.commit()
    return MessageResponse(message="Learning block deleted successfully")
