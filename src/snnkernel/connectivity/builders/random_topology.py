"""Connection-rule builders on top of :class:`ConnectionRouter`."""

from __future__ import annotations

from collections.abc import Sequence

from snnkernel.connectivity.router import Connection, ConnectionRouter
from snnkernel.contracts.events import EventKind
from snnkernel.contracts.nodes import INodeModel
from snnkernel.core.torch_utils import require_torch
from snnkernel.errors import ConnectionValidationError


def connect_one_to_one(
    router: ConnectionRouter,
    sources: Sequence[INodeModel],
    targets: Sequence[INodeModel],
    *,
    delay_steps: int = 1,
    weight: float = 1.0,
    channel: EventKind = EventKind.SPIKE,
) -> list[Connection]:
    if len(sources) != len(targets):
        raise ConnectionValidationError("one_to_one requires equally sized source and target lists")
    return [
        router.connect(pre, post, delay_steps, weight, channel)
        for pre, post in zip(sources, targets, strict=True)
    ]


def connect_all_to_all(
    router: ConnectionRouter,
    sources: Sequence[INodeModel],
    targets: Sequence[INodeModel],
    *,
    delay_steps: int = 1,
    weight: float = 1.0,
    channel: EventKind = EventKind.SPIKE,
) -> list[Connection]:
    conns: list[Connection] = []
    for post in targets:
        for pre in sources:
            if pre.node_id == post.node_id and not router.allow_autapses:
                continue
            conns.append(router.connect(pre, post, delay_steps, weight, channel))
    return conns


def connect_fixed_indegree(
    router: ConnectionRouter,
    sources: Sequence[INodeModel],
    targets: Sequence[INodeModel],
    indegree: int,
    *,
    seed: int = 0,
    delay_steps: int = 1,
    weight: float = 1.0,
    channel: EventKind = EventKind.SPIKE,
) -> list[Connection]:
    """Draw exactly ``indegree`` sources for every target.

    Autapses and multapses follow the router's ``allow_autapses`` and
    ``allow_multapses`` flags. Multiplicity-encoding models should be wired
    with ``allow_multapses=False`` so that every pair has at most one edge.
    """

    if indegree < 0:
        raise ConnectionValidationError(f"indegree must be >= 0, got {indegree}")
    torch = require_torch()
    gen = torch.Generator(device="cpu")
    gen.manual_seed(int(seed))

    conns: list[Connection] = []
    for post in targets:
        pool = [
            pre
            for pre in sources
            if router.allow_autapses or pre.node_id != post.node_id
        ]
        if not pool and indegree > 0:
            raise ConnectionValidationError(f"no eligible sources for node {post.node_id}")
        if router.allow_multapses:
            picks = torch.randint(0, len(pool), (indegree,), generator=gen).tolist()
        else:
            if indegree > len(pool):
                raise ConnectionValidationError(
                    f"indegree {indegree} exceeds {len(pool)} eligible sources without multapses"
                )
            picks = torch.randperm(len(pool), generator=gen)[:indegree].tolist()
        for idx in picks:
            conns.append(router.connect(pool[idx], post, delay_steps, weight, channel))
    return conns


__all__ = ["connect_all_to_all", "connect_fixed_indegree", "connect_one_to_one"]
