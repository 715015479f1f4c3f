from fastapi import APIRouter

from tabroom.routes import debates, rounds

router = APIRouter(prefix="/api")
router.include_router(rounds.router)
router.include_router(debates.router)
