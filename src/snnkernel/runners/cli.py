"""CLI entrypoint for running a SIRS network simulation."""

from __future__ import annotations

import argparse
import logging
from collections import Counter
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from snnkernel.api.version import __version__
from snnkernel.biophysics.models.sirs import SIRSState
from snnkernel.connectivity.builders import connect_fixed_indegree
from snnkernel.contracts.events import EventKind
from snnkernel.contracts.simulation import SimulationConfig
from snnkernel.core.torch_utils import require_torch
from snnkernel.errors import ConfigurationError
from snnkernel.monitors import Multimeter, SpikeRecorder
from snnkernel.simulation.clock import steps_from_ms
from snnkernel.simulation.context import KernelContext
from snnkernel.simulation.engine import NetworkEngine


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    torch = require_torch()
    if args.torch_threads is not None:
        torch.set_num_threads(args.torch_threads)

    out_dir = Path(args.out_dir).expanduser().resolve() if args.out_dir else None
    config = SimulationConfig(
        resolution=args.dt,
        seed=args.seed,
        local_num_threads=args.threads,
        meta={"cli": True},
    )

    print(f"snnkernel {__version__}")
    print(f"Neurons: {args.n}  indegree: {args.indegree}  steps: {args.steps}  dt: {args.dt} ms")
    if out_dir is not None:
        print(f"Output dir: {out_dir}")

    with KernelContext(config) as context:
        engine = NetworkEngine(context, allow_autapses=False, allow_multapses=False)
        try:
            summary = run_sirs_network(engine, args, out_dir=out_dir)
        finally:
            engine.close()

    _print_summary(summary)


def run_sirs_network(
    engine: NetworkEngine,
    args: argparse.Namespace,
    *,
    out_dir: Path | None = None,
) -> dict[str, Any]:
    """Build the network described by ``args`` on ``engine`` and run it."""

    neurons = engine.create(
        "sirs_neuron",
        args.n,
        tau_m=args.tau_m,
        beta_sirs=args.beta,
        mu_sirs=args.mu,
        eta_sirs=args.eta,
        gain=args.gain,
        theta=args.theta,
    )
    indegree = min(args.indegree, max(args.n - 1, 0))
    connect_fixed_indegree(
        engine.router,
        neurons,
        neurons,
        indegree,
        seed=args.seed,
        delay_steps=args.delay_steps,
        weight=args.weight,
    )
    if args.dc != 0.0:
        (dc,) = engine.create("dc_source", amplitude=args.dc)
        for neuron in neurons:
            engine.connect(dc, neuron, delay_steps=1, weight=1.0, channel=EventKind.CURRENT)

    spikes_path = out_dir / "spikes.csv" if out_dir is not None else None
    states_path = out_dir / "states.csv" if out_dir is not None else None
    recorder = SpikeRecorder(path=spikes_path)
    multimeter = Multimeter(("S", "h"), interval=args.sample_every, path=states_path)
    engine.attach_monitors([recorder])
    engine.connect_recorder(multimeter, neurons)

    executed = engine.run(args.steps)

    multiplicities = Counter(rec.multiplicity for rec in recorder.records)
    final_states = Counter(SIRSState(engine.get_node_status(n)["y"]).name for n in neurons)
    return {
        "steps": executed,
        "biological_time_ms": engine.clock.now.ms,
        "events": len(recorder.records),
        "up_transitions": multiplicities.get(2, 0),
        "down_transitions": multiplicities.get(1, 0),
        "final_states": {state.name: final_states.get(state.name, 0) for state in SIRSState},
        "connections": len(engine.router),
        "spikes_csv": str(spikes_path) if spikes_path is not None else None,
        "states_csv": str(states_path) if states_path is not None else None,
    }


def _print_summary(summary: dict[str, Any]) -> None:
    print(f"Steps executed: {summary['steps']} ({summary['biological_time_ms']:.3f} ms)")
    print(f"Connections: {summary['connections']}")
    print(
        f"Events: {summary['events']} "
        f"(S->I: {summary['up_transitions']}, down: {summary['down_transitions']})"
    )
    states = summary["final_states"]
    print("Final states: " + ", ".join(f"{name}={count}" for name, count in states.items()))
    if summary["spikes_csv"]:
        print(f"Spikes: {summary['spikes_csv']}")
        print(f"States: {summary['states_csv']}")


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a stochastic SIRS network simulation")
    parser.add_argument("--n", type=int, default=100, help="number of SIRS neurons")
    parser.add_argument(
        "--indegree",
        type=int,
        default=10,
        help="incoming connections per neuron (no autapses or multapses)",
    )
    parser.add_argument("--steps", type=int, default=1000)
    parser.add_argument("--dt", type=float, default=0.1, help="resolution in ms")
    parser.add_argument("--seed", type=int, default=12345)
    parser.add_argument("--threads", type=int, default=1, help="local update threads")
    parser.add_argument(
        "--torch-threads",
        type=int,
        default=None,
        help="torch intra-op threads (default: torch decides)",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=None,
        help="connection delay in ms, a multiple of --dt (default: one step)",
    )
    parser.add_argument("--weight", type=float, default=1.0)
    parser.add_argument("--tau-m", type=float, default=10.0, help="mean candidate interval (ms)")
    parser.add_argument("--beta", type=float, default=0.1, help="S->I gain scale")
    parser.add_argument("--mu", type=float, default=0.1, help="I->R probability")
    parser.add_argument("--eta", type=float, default=0.1, help="R->S probability")
    parser.add_argument("--gain", choices=["linear", "sigmoid"], default="linear")
    parser.add_argument("--theta", type=float, default=0.0, help="sigmoid gain threshold")
    parser.add_argument(
        "--dc",
        type=float,
        default=0.05,
        help="constant current into every neuron (0 disables the source)",
    )
    parser.add_argument("--sample-every", type=int, default=10, help="multimeter interval (steps)")
    parser.add_argument("--out-dir", type=str, default=None, help="write spikes.csv/states.csv here")
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default="warning",
    )
    args = parser.parse_args(argv)
    if args.n < 1:
        parser.error("--n must be >= 1")
    if args.steps < 0:
        parser.error("--steps must be >= 0")
    if args.dt <= 0:
        parser.error("--dt must be > 0")
    if args.delay is None:
        args.delay_steps = 1
    else:
        try:
            args.delay_steps = steps_from_ms(args.delay, args.dt)
        except ConfigurationError as exc:
            parser.error(str(exc))
        if args.delay_steps < 1:
            parser.error("--delay must be at least one step (--dt)")
    return args


if __name__ == "__main__":
    main()
