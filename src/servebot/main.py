from __future__ import annotations

import argparse
import asyncio
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Dict

from .events import RobotDispatched, SimulationComplete
from .floorplan import FloorPlan, TableType
from .models import DEFAULT_MENU, scale_menu
from .plots import plot_bars, plot_gantt, plot_queue
from .sim.engine import SimulationConfig, SimulationEngine
from .sim.metrics import orders_to_dataframe, trips_to_dataframe

logger = logging.getLogger("servebot")


def build_demo_floor_plan() -> FloorPlan:
    """Salão de exemplo: cozinha, duas junções e cinco mesas."""
    plan = FloorPlan()
    k = plan.add_kitchen((0, 0))
    t1 = plan.add_table((6, 0), TableType.T2)
    t2 = plan.add_table((3, 4), TableType.T4)
    t3 = plan.add_table((0, 5), TableType.T6)
    t4 = plan.add_table((9, 4), TableType.T4)
    t5 = plan.add_table((6, 7), TableType.T2)

    # Corredor principal K -> T2-1, dividido em J1 na coluna 3
    plan.add_edge(k.id, t1.id, [(1, 0), (2, 0), (3, 0), (4, 0), (5, 0)])
    j1 = plan.split_edge(k.id, t1.id, (3, 0))
    plan.add_edge(j1.id, t2.id, [(3, 1), (3, 2), (3, 3)])
    plan.add_edge(k.id, t3.id, [(0, 1), (0, 2), (0, 3), (0, 4)])

    # Corredor lateral T2-1 -> T4-4, dividido em J2
    plan.add_edge(t1.id, t4.id, [(7, 0), (8, 0), (9, 0), (9, 1), (9, 2), (9, 3)])
    j2 = plan.split_edge(t1.id, t4.id, (9, 1))
    plan.add_edge(j2.id, t5.id, [(8, 1), (7, 1), (7, 2), (7, 3), (7, 4), (7, 5), (6, 5), (6, 6)])
    plan.add_edge(t2.id, t5.id, [(3, 5), (3, 6), (3, 7), (4, 7), (5, 7)])
    return plan


def main() -> None:
    parser = argparse.ArgumentParser(
        description="servebot: simulação de cozinha e robô garçom em tempo real"
    )
    parser.add_argument(
        "--outputs",
        type=str,
        default="outputs",
        help="Diretório de saída para CSV/JSON/PNG",
    )
    parser.add_argument("--seed", type=int, default=123, help="Semente dos pedidos aleatórios")
    parser.add_argument(
        "--time-scale",
        type=float,
        default=1.0,
        help="Segundos de relógio por unidade de tempo (menor = mais rápido)",
    )
    parser.add_argument(
        "--cook-scale",
        type=float,
        default=1.0,
        help="Fator aplicado aos tempos de preparo do cardápio",
    )
    parser.add_argument("--log-level", type=str, default="INFO", help="Nível de log (DEBUG, INFO, ...)")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    outputs_dir = Path(args.outputs)
    outputs_dir.mkdir(parents=True, exist_ok=True)

    engine = SimulationEngine(
        build_demo_floor_plan(),
        SimulationConfig(seed=args.seed, time_scale=args.time_scale),
        menu=scale_menu(DEFAULT_MENU, args.cook_scale),
    )
    engine.bus.subscribe(
        RobotDispatched,
        lambda ev: logger.info("[%.1f] rota da viagem %d: %s", ev.timestamp, ev.trip_id, " -> ".join(ev.route)),
    )
    engine.bus.subscribe(
        SimulationComplete,
        lambda ev: logger.info("[%.1f] fim da simulação%s", ev.timestamp, f" ({ev.error})" if ev.error else ""),
    )

    summary = asyncio.run(engine.run())
    if summary is None:
        logger.warning("simulação reiniciada antes de terminar; nada a salvar")
        return

    df_orders = orders_to_dataframe(list(engine.metrics.orders.values()))
    df_trips = trips_to_dataframe(list(engine.metrics.trips.values()))
    df_orders.to_csv(outputs_dir / "orders.csv", index=False)
    df_trips.to_csv(outputs_dir / "trips.csv", index=False)
    (outputs_dir / "summary.json").write_text(json.dumps(asdict(summary), indent=2), encoding="utf-8")

    if not df_orders.empty:
        turnaround_by_dish: Dict[str, float] = (
            df_orders.dropna(subset=["turnaround_time"]).groupby("dish")["turnaround_time"].mean().astype(float).to_dict()
        )
        wait_by_table: Dict[str, float] = (
            df_orders.dropna(subset=["waiting_time"]).groupby("table")["waiting_time"].mean().astype(float).to_dict()
        )
        plot_bars(turnaround_by_dish, "Tempo médio do pedido à mesa, por prato", outputs_dir / "turnaround_by_dish.png")
        plot_bars(wait_by_table, "Espera média na cozinha, por mesa", outputs_dir / "wait_by_table.png")
        plot_gantt(df_orders, "Estações de cozinha", outputs_dir / "kitchen_gantt.png")
    plot_queue(engine.metrics.queue_samples, "Fila de entrega do robô", outputs_dir / "delivery_queue.png")

    logger.info(
        "%d/%d pedidos entregues em %d viagens (distância total %d)",
        summary.orders_delivered,
        summary.orders_placed,
        summary.trips,
        summary.total_distance,
    )


if __name__ == "__main__":
    main()
