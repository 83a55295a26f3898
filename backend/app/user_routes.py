from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
import logging

from . import models, schemas
from .database import Database, get_database
from .errors import SERVER_ERROR

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


def fetch_users(db: Database) -> list:
    session = db.session()
    try:
        items = session.query(models.User).order_by(models.User.id).all()
        return [schemas.serialize(u) for u in items]
    finally:
        session.close()


@router.get("")
async def list_users(db: Database = Depends(get_database)):
    try:
        users = await run_in_threadpool(fetch_users, db)
    except Exception:
        logger.exception('users fetch error')
        return JSONResponse(status_code=500, content={"error": SERVER_ERROR})
    return {"success": True, "users": users}
