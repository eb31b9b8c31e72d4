"""Connectivity builders."""

from snnkernel.connectivity.builders.random_topology import (
    connect_all_to_all,
    connect_fixed_indegree,
    connect_one_to_one,
)

__all__ = ["connect_all_to_all", "connect_fixed_indegree", "connect_one_to_one"]
