from fastapi import APIRouter

from . import auth, catalog, drinks, sessions, views

router = APIRouter(prefix="/api")
router.include_router(auth.router)
router.include_router(catalog.router)
# views registers /sessions/{id}/summary alongside the sessions router
router.include_router(views.router)
router.include_router(sessions.router)
router.include_router(drinks.router)
