from __future__ import annotations

from dataclasses import replace

from loguru import logger

from .types import Encounter, MapNode, MapNodeType, MapState

NODES_PER_FLOOR = 10
COMBAT_NODE_TYPES: frozenset[MapNodeType] = frozenset({"BATTLE", "ELITE", "BOSS"})


def _node_id(floor: int, index: int) -> str:
    return f"node_{floor}_{index}"


def _node_type(index: int, total: int) -> MapNodeType:
    if index == total - 1:
        return "BOSS"
    if index % 4 == 3:
        return "REST"
    if index % 3 == 2 and index != total - 2:
        return "ELITE"
    return "BATTLE"


def generate_floor_map(floor: int) -> MapState:
    """A straight line of encounter nodes ending in the floor boss."""
    nodes: list[MapNode] = []
    for i in range(NODES_PER_FLOOR):
        connections = (_node_id(floor, i + 1),) if i < NODES_PER_FLOOR - 1 else ()
        nodes.append(
            MapNode(
                id=_node_id(floor, i),
                type=_node_type(i, NODES_PER_FLOOR),
                x=i,
                y=0,
                connections=connections,
            )
        )
    return MapState(nodes=tuple(nodes), current_node_id=nodes[0].id, floor=floor)


def reachable_nodes(state: MapState) -> list[MapNode]:
    current = state.current_node
    if current is None:
        return []
    return [n for n in state.nodes if n.id in current.connections]


def can_move_to(state: MapState, target_id: str) -> bool:
    current = state.current_node
    return current is not None and target_id in current.connections


def move_to_node(state: MapState, target_id: str) -> MapState:
    if not can_move_to(state, target_id):
        logger.warning(
            "Target node {} is not reachable from {}", target_id, state.current_node_id
        )
        return state
    return replace(state, current_node_id=target_id)


def complete_node(state: MapState, node_id: str) -> MapState:
    node = state.node(node_id)
    if node is None or node.completed:
        return state
    nodes = tuple(replace(n, completed=True) if n.id == node_id else n for n in state.nodes)
    return replace(state, nodes=nodes)


def generate_encounter(node_type: MapNodeType, floor: int) -> Encounter | None:
    if node_type == "BATTLE":
        return Encounter(
            id=f"enc_{floor}_battle",
            enemy_types=("slime",),
            enemy_count=1 + floor // 3,
            difficulty=float(floor),
        )
    if node_type == "ELITE":
        return Encounter(
            id=f"enc_{floor}_elite",
            enemy_types=("elite_slime",),
            enemy_count=1,
            difficulty=floor * 1.5,
        )
    if node_type == "BOSS":
        return Encounter(
            id=f"enc_{floor}_boss",
            enemy_types=("boss_slime",),
            enemy_count=1,
            difficulty=floor * 2.0,
        )
    return None
