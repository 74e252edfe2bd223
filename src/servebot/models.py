from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple


@dataclass(frozen=True, slots=True)
class Dish:
    name: str
    cook_time: float  # segundos (unidades de tempo da simulação)


# Cardápio do restaurante: uma estação de cozinha por prato
DEFAULT_MENU: Tuple[Dish, ...] = (
    Dish("Chrysanthemum Tea", 6),
    Dish("Water", 3),
    Dish("Chinese Herbal Drink", 5),
    Dish("Spicy Stir-Fried Chicken", 20),
    Dish("Yangzhou Fried Rice", 20),
    Dish("Szechuan Tom Yum", 23),
    Dish("Wonton Soup", 18),
    Dish("Mango Pudding", 15),
    Dish("Sesame Balls", 13),
    Dish("Egg Tart", 12),
)


def scale_menu(menu: Sequence[Dish], factor: float) -> Tuple[Dish, ...]:
    if factor <= 0:
        raise ValueError("fator de escala inválido")
    return tuple(Dish(d.name, d.cook_time * factor) for d in menu)


@dataclass(frozen=True, slots=True)
class Order:
    oid: int
    table_number: int
    dish: Dish
    placed_at: float

    def __str__(self) -> str:
        return f"#{self.oid} {self.dish.name} (mesa {self.table_number})"
