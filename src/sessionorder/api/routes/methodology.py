"""Methodology endpoints."""

from fastapi import APIRouter, HTTPException

from sessionorder.engine import Methodology
from sessionorder.models import BandId

router = APIRouter(prefix="/methodology", tags=["Methodology"])

# Shared methodology (set by main.py)
methodology: Methodology = None


def set_methodology(m: Methodology):
    global methodology
    methodology = m


@router.get("")
async def get_methodology():
    """Active methodology: grade bands, severity levels and categories."""
    return methodology.to_dict()


@router.get("/rules/{band}")
async def get_rules(band: str):
    """Universal rules worded for a grade band (A-E)."""
    try:
        band_id = BandId(band.upper())
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Band '{band}' not found")
    return methodology.rules(band_id)


@router.get("/categories")
async def get_categories(include_other: bool = True):
    """Quick-log category buttons in display order."""
    return methodology.category_buttons(include_other=include_other)
