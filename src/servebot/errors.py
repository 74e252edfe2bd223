from __future__ import annotations

from typing import Sequence, Tuple


class ServeBotError(Exception):
    pass


class FloorPlanError(ServeBotError, ValueError):
    """Operação de edição rejeitada pela planta do salão."""


class DuplicateKitchenError(FloorPlanError):
    pass


class FloorPlanValidationError(FloorPlanError):
    """Planta não pode ser simulada: sem cozinha ou com mesas inalcançáveis."""

    def __init__(self, reason: str, tables: Sequence[str] = ()) -> None:
        super().__init__(reason)
        self.reason = reason
        self.tables: Tuple[str, ...] = tuple(tables)


class RoutingError(ServeBotError):
    pass


class EdgeNotFoundError(RoutingError, LookupError):
    def __init__(self, src: str, dest: str) -> None:
        super().__init__(f"nenhuma aresta de {src} para {dest}")
        self.src = src
        self.dest = dest


class SimulationStateError(ServeBotError, RuntimeError):
    pass
