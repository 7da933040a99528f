from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.schemas import TagsResponse
from conduit.services import article_service

router = APIRouter(prefix="/api/tags", tags=["tags"])

@router.get("", response_model=TagsResponse)
async def list_tags(db: AsyncSession = Depends(get_db)):
    return await article_service.get_tags(db)
