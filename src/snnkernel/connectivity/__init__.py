"""Connectivity: connection table, routing and connection rules."""

from snnkernel.connectivity.builders import (
    connect_all_to_all,
    connect_fixed_indegree,
    connect_one_to_one,
)
from snnkernel.connectivity.router import Connection, ConnectionRouter

__all__ = [
    "Connection",
    "ConnectionRouter",
    "connect_all_to_all",
    "connect_fixed_indegree",
    "connect_one_to_one",
]
