from dataclasses import asdict

from fastapi import APIRouter

from drinkwise.services.catalog import DRINK_CATEGORIES

router = APIRouter(tags=["catalog"])


@router.get("/catalog")
async def drink_catalog():
    """Standard drink presets grouped by category."""
    return {"categories": [asdict(category) for category in DRINK_CATEGORIES]}
