#!/usr/bin/env python3
"""
polysddp Benchmark: SDDP iterations on random multi-reservoir problems
"""

import sys
sys.path.insert(0, '../python')

import time
import numpy as np

import polysddp
from polysddp.sddp import (
    Mode,
    NoiseLaw,
    SDDPParameters,
    StageSpec,
    backward_pass,
    build_models,
    estimate_upper_bound,
    forward_pass,
    initial_value_functions,
    sample_scenarios,
)

print(f"polysddp version: {polysddp.__version__}")
print()


def generate_problem(n_reservoirs, n_stages, n_outcomes=3, seed=42):
    """Generate a random hydro-thermal problem."""
    rng = np.random.default_rng(seed)

    capacity = rng.uniform(5.0, 15.0, n_reservoirs)
    max_release = capacity / 2
    demand = 0.6 * max_release.sum()
    thermal_cost = 5.0

    def dynamics(t, x, u, w):
        # Controls: releases, spills, thermal generation
        return x - u[:n_reservoirs] - u[n_reservoirs:2 * n_reservoirs] + w

    def cost(t, x, u, w):
        return thermal_cost * u[2 * n_reservoirs]

    def constraints(t, x, u, w):
        total = u[0]
        for i in range(1, n_reservoirs):
            total = total + u[i]
        return [total + u[2 * n_reservoirs] >= demand]

    control_bounds = (
        [(0.0, m) for m in max_release]
        + [(0.0, c) for c in capacity]
        + [(0.0, demand)]
    )
    problem = StageSpec(
        stage_number=n_stages,
        dim_states=n_reservoirs,
        dim_controls=2 * n_reservoirs + 1,
        dim_noises=n_reservoirs,
        initial_state=capacity / 2,
        dynamics=dynamics,
        cost=cost,
        state_bounds=[(0.0, c) for c in capacity],
        control_bounds=control_bounds,
        constraints=constraints,
    )

    laws = []
    for _ in range(n_stages - 1):
        support = rng.uniform(0.0, 1.0, (n_outcomes, n_reservoirs)) * max_release
        laws.append(NoiseLaw.uniform(support))
    return problem, laws


def run_sddp(problem, laws, iterations, n_forward, mode=Mode.HAZARD_DECISION):
    """Run SDDP iterations and time both passes."""
    params = SDDPParameters()
    models = build_models(problem, laws, params, mode=mode)
    V = initial_value_functions(problem)

    forward_time = backward_time = 0.0
    lower_bound = float('nan')
    for iteration in range(iterations):
        scenarios = sample_scenarios(laws, n_forward, seed=iteration)

        start = time.perf_counter()
        _, stocks, _ = forward_pass(problem, params, models, scenarios, mode=mode)
        forward_time += time.perf_counter() - start

        start = time.perf_counter()
        lower_bound = backward_pass(problem, params, V, models, stocks, laws, mode=mode)
        backward_time += time.perf_counter() - start

    costs, _, _ = forward_pass(problem, params, models, sample_scenarios(laws, 100, seed=10_000), mode=mode)
    estimate, lower, upper = estimate_upper_bound(costs)

    return {
        'forward': forward_time,
        'backward': backward_time,
        'lower_bound': lower_bound,
        'upper': (estimate, lower, upper),
        'cuts': sum(fn.num_cuts for fn in V),
    }


def benchmark_scaling():
    """Benchmark across problem sizes."""
    print("=" * 70)
    print("SDDP Scaling Benchmark")
    print("=" * 70)

    sizes = [
        (1, 5),
        (2, 5),
        (3, 8),
        (5, 8),
        (5, 12),
    ]

    all_results = []

    for n_reservoirs, n_stages in sizes:
        print(f"\nProblem size: {n_reservoirs} reservoirs, {n_stages} stages")
        problem, laws = generate_problem(n_reservoirs, n_stages)
        res = run_sddp(problem, laws, iterations=10, n_forward=5)
        all_results.append((n_reservoirs, n_stages, res))
        estimate, lower, upper = res['upper']
        print(f"    lower bound: {res['lower_bound']:10.4f}, "
              f"upper estimate: {estimate:10.4f} [{lower:.4f}, {upper:.4f}]")

    # Summary table
    print("\n" + "=" * 70)
    print("Summary")
    print("=" * 70)
    print(f"{'res':>5} {'T':>5} {'fwd (ms)':>12} {'bwd (ms)':>12} {'cuts':>8} {'gap':>10}")
    print("-" * 70)

    for n_reservoirs, n_stages, res in all_results:
        gap = res['upper'][0] - res['lower_bound']
        print(f"{n_reservoirs:>5} {n_stages:>5} {res['forward']*1000:>12.1f} "
              f"{res['backward']*1000:>12.1f} {res['cuts']:>8} {gap:>10.4f}")


def benchmark_modes():
    """Compare hazard-decision and decision-hazard stage models."""
    print("\n" + "=" * 70)
    print("Hazard-Decision vs Decision-Hazard")
    print("=" * 70)

    problem, laws = generate_problem(2, 6)
    for mode in (Mode.HAZARD_DECISION, Mode.DECISION_HAZARD):
        res = run_sddp(problem, laws, iterations=8, n_forward=4, mode=mode)
        total = res['forward'] + res['backward']
        print(f"  {str(mode):>16}: {total*1000:8.1f} ms, lower bound {res['lower_bound']:.4f}")


if __name__ == "__main__":
    benchmark_scaling()
    benchmark_modes()
