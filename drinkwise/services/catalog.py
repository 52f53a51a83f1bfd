"""Standard drink presets used by the drink entry form.

Unit values follow the UK convention (10 ml of pure alcohol per unit).
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DrinkPreset:
    name: str
    volume: str
    abv: str
    units: float


@dataclass(frozen=True)
class DrinkCategory:
    name: str
    drinks: tuple[DrinkPreset, ...]


DRINK_CATEGORIES: tuple[DrinkCategory, ...] = (
    DrinkCategory(
        "Beer / Lager / Cider",
        (
            DrinkPreset("Half pint of standard lager", "284ml", "3.5%", 1.0),
            DrinkPreset("Pint of lager", "568ml", "4%", 2.3),
            DrinkPreset("Pint of strong beer (e.g. IPA)", "568ml", "5.2%", 3.0),
            DrinkPreset("Bottle of beer (330ml)", "330ml", "5%", 1.7),
            DrinkPreset("Can of strong cider (500ml)", "500ml", "7.5%", 3.8),
        ),
    ),
    DrinkCategory(
        "Wine",
        (
            DrinkPreset("Small glass (125ml) red/white wine", "125ml", "12%", 1.5),
            DrinkPreset("Medium glass (175ml)", "175ml", "13%", 2.3),
            DrinkPreset("Large glass (250ml)", "250ml", "14%", 3.5),
            DrinkPreset("Bottle of wine (750ml)", "750ml", "13.5%", 10.0),
        ),
    ),
    DrinkCategory(
        "Spirits & Shots",
        (
            DrinkPreset("Single shot (25ml) of spirit", "25ml", "40%", 1.0),
            DrinkPreset("Double shot (50ml)", "50ml", "40%", 2.0),
            DrinkPreset("Liqueur (Baileys, Amaretto) 50ml", "50ml", "20%", 1.0),
        ),
    ),
    DrinkCategory(
        "Cocktails (approximate)",
        (
            DrinkPreset("Margarita", "~125ml", "~33%", 2.1),
            DrinkPreset("Mojito", "~200ml", "~10%", 2.0),
            DrinkPreset("Negroni (served 90ml)", "90ml", "~26%", 2.3),
            DrinkPreset("Long Island Iced Tea", "~250ml", "~22%", 4.0),
        ),
    ),
    DrinkCategory(
        "Fortified & Other Wines",
        (
            DrinkPreset("Glass of Port/Sherry (50ml)", "50ml", "20%", 1.0),
            DrinkPreset("Small glass of sweet wine", "100ml", "15%", 1.5),
        ),
    ),
)
