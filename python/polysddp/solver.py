"""polysddp Solver Interface."""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional, Union

import numpy as np
from scipy import sparse

from .exceptions import DimensionError, InvalidInputError
from .result import SolveResult, Status


def solve(
    c: np.ndarray,
    A: Optional[Union[np.ndarray, sparse.spmatrix]] = None,
    b: Optional[np.ndarray] = None,
    P: Optional[Union[np.ndarray, sparse.spmatrix]] = None,
    lb: Optional[np.ndarray] = None,
    ub: Optional[np.ndarray] = None,
    constraint_l: Optional[np.ndarray] = None,
    constraint_u: Optional[np.ndarray] = None,
    constraint_senses: Optional[List[str]] = None,
    integrality: Optional[np.ndarray] = None,
    offset: float = 0.0,
    params: Optional[Dict[str, Any]] = None,
) -> SolveResult:
    """
    Solve an LP, MILP or convex QP.

    minimize    (1/2) x'Px + c'x + offset
    subject to  constraint_l <= Ax <= constraint_u
                lb <= x <= ub
                x_i integer where integrality[i] == 1

    LPs go to HiGHS through ``scipy.optimize.linprog`` and return duals,
    MILPs go to ``scipy.optimize.milp`` (no duals, ``y`` is NaN) and QPs to
    SLSQP (``y`` is zero).

    Params:
        method: linprog method ('highs', 'highs-ds', 'highs-ipm')
        max_iterations: iteration limit
        time_limit: time limit in seconds
        tolerance: feasibility tolerance
        presolve: enable HiGHS presolve (default True)
        mip_rel_gap: relative MIP gap
        verbose: print solver output and failures
    """
    start_time = time.perf_counter()
    params = params or {}

    c = np.asarray(c, dtype=np.float64).ravel()
    n = len(c)
    lb = np.zeros(n) if lb is None else np.asarray(lb, dtype=np.float64).ravel()
    ub = np.full(n, np.inf) if ub is None else np.asarray(ub, dtype=np.float64).ravel()

    if len(lb) != n or len(ub) != n:
        raise DimensionError(f"Bounds mismatch: lb={len(lb)}, ub={len(ub)}, n={n}")

    if A is not None:
        A = A.tocsr() if sparse.issparse(A) else np.asarray(A, dtype=np.float64)
        if A.ndim == 1:
            A = A.reshape(1, -1)
        m = A.shape[0]
        if A.shape[1] != n:
            raise DimensionError(f"A columns {A.shape[1]} != n={n}")
    else:
        m = 0
        A = sparse.csr_matrix((0, n))

    if constraint_senses is not None:
        if b is None:
            raise InvalidInputError("b required with constraint_senses")
        b = np.asarray(b, dtype=np.float64).ravel()
        constr_l = np.full(m, -np.inf)
        constr_u = np.full(m, np.inf)
        for i, sense in enumerate(constraint_senses):
            if sense in ('=', '=='):
                constr_l[i] = constr_u[i] = b[i]
            elif sense in ('<=', '<'):
                constr_u[i] = b[i]
            elif sense in ('>=', '>'):
                constr_l[i] = b[i]
            else:
                raise InvalidInputError(f"unknown constraint sense '{sense}'")
    elif constraint_l is not None or constraint_u is not None:
        constr_l = np.asarray(constraint_l, dtype=np.float64) if constraint_l is not None else np.full(m, -np.inf)
        constr_u = np.asarray(constraint_u, dtype=np.float64) if constraint_u is not None else np.full(m, np.inf)
    elif b is not None:
        b = np.asarray(b, dtype=np.float64).ravel()
        constr_l = constr_u = b
    else:
        constr_l = np.full(m, -np.inf)
        constr_u = np.full(m, np.inf)

    if len(constr_l) != m or len(constr_u) != m:
        raise DimensionError(f"Constraint bounds have {len(constr_l)}/{len(constr_u)} rows, A has {m}")

    is_qp = P is not None and (P.nnz > 0 if sparse.issparse(P) else np.any(P))
    if is_qp:
        P = P.tocsr() if sparse.issparse(P) else np.asarray(P, dtype=np.float64)
        if P.shape != (n, n):
            raise DimensionError(f"P must be ({n},{n}), got {P.shape}")

    is_mip = integrality is not None and np.any(integrality)
    if is_mip:
        integrality = np.asarray(integrality, dtype=int).ravel()
        if len(integrality) != n:
            raise DimensionError(f"integrality has {len(integrality)} entries, n={n}")

    A_dense = A.toarray() if sparse.issparse(A) else np.asarray(A)

    if is_qp and is_mip:
        raise InvalidInputError("quadratic objectives require relaxed integrality")
    elif is_qp:
        result = _solve_qp(c, A_dense, P, lb, ub, constr_l, constr_u, params)
    elif is_mip:
        result = _solve_milp(c, A_dense, lb, ub, constr_l, constr_u, integrality, params)
    else:
        result = _solve_lp(c, A_dense, lb, ub, constr_l, constr_u, params)

    if result.status.is_successful:
        result.objective += offset
    result.solve_time = time.perf_counter() - start_time
    result.problem_info = {"n": n, "m": m, "qp": bool(is_qp), "mip": bool(is_mip)}
    return result


def _failed(status: Status, n: int, m: int) -> SolveResult:
    return SolveResult(status=status, objective=float('nan'), x=np.full(n, np.nan),
                       y=np.full(m, np.nan), iterations=0, solve_time=0.0)


def _highs_options(params: Dict[str, Any]) -> Dict[str, Any]:
    options: Dict[str, Any] = {'disp': bool(params.get('verbose', False)),
                               'presolve': bool(params.get('presolve', True))}
    if 'max_iterations' in params or 'max_iters' in params:
        options['maxiter'] = int(params.get('max_iterations', params.get('max_iters')))
    if 'time_limit' in params:
        options['time_limit'] = float(params['time_limit'])
    if 'tolerance' in params or 'tol' in params:
        tol = float(params.get('tolerance', params.get('tol')))
        options['primal_feasibility_tolerance'] = tol
        options['dual_feasibility_tolerance'] = tol
    return options


def _solve_lp(c, A, lb, ub, constr_l, constr_u, params):
    from scipy.optimize import linprog

    n, m = len(c), A.shape[0]
    verbose = params.get('verbose', False)

    eq_mask = np.isfinite(constr_l) & np.isfinite(constr_u) & (np.abs(constr_l - constr_u) < 1e-10)
    upper_rows = np.where(~eq_mask & np.isfinite(constr_u))[0]
    lower_rows = np.where(~eq_mask & np.isfinite(constr_l))[0]
    eq_rows = np.where(eq_mask)[0]

    A_eq = A[eq_rows] if len(eq_rows) else None
    b_eq = constr_l[eq_rows] if len(eq_rows) else None
    A_ub, b_ub = None, None
    if len(upper_rows) or len(lower_rows):
        # Rows with a lower bound l are passed as -a'x <= -l
        A_ub = np.vstack([A[upper_rows], -A[lower_rows]])
        b_ub = np.concatenate([constr_u[upper_rows], -constr_l[lower_rows]])

    bounds = [(l if np.isfinite(l) else None, u if np.isfinite(u) else None) for l, u in zip(lb, ub)]
    try:
        result = linprog(c, A_ub=A_ub, b_ub=b_ub, A_eq=A_eq, b_eq=b_eq, bounds=bounds,
                         method=params.get('method', 'highs'), options=_highs_options(params))
    except ValueError as e:
        if verbose: print(f"scipy LP rejected the problem: {e}")
        return _failed(Status.INVALID_INPUT, n, m)

    status = Status.from_scipy(result.status)
    if not status.is_successful:
        if verbose: print(f"scipy LP failed: {result.message}")
        failed = _failed(status, n, m)
        failed.iterations = getattr(result, 'nit', 0)
        return failed

    # Duals are d(objective)/d(rhs) for each original row
    y = np.zeros(m)
    if len(eq_rows):
        y[eq_rows] = result.eqlin.marginals
    if A_ub is not None:
        marginals = result.ineqlin.marginals
        n_up = len(upper_rows)
        y[upper_rows] += marginals[:n_up]
        y[lower_rows] -= marginals[n_up:]

    return SolveResult(status=status, objective=float(result.fun), x=np.asarray(result.x),
                       y=y, iterations=getattr(result, 'nit', 0), solve_time=0.0)


def _solve_milp(c, A, lb, ub, constr_l, constr_u, integrality, params):
    from scipy.optimize import Bounds, LinearConstraint, milp

    n, m = len(c), A.shape[0]
    verbose = params.get('verbose', False)

    constraints = [LinearConstraint(A, constr_l, constr_u)] if m > 0 else []
    options: Dict[str, Any] = {'disp': bool(verbose), 'presolve': bool(params.get('presolve', True))}
    if 'time_limit' in params:
        options['time_limit'] = float(params['time_limit'])
    if 'mip_rel_gap' in params:
        options['mip_rel_gap'] = float(params['mip_rel_gap'])

    try:
        result = milp(c, integrality=integrality, bounds=Bounds(lb, ub),
                      constraints=constraints, options=options)
    except ValueError as e:
        if verbose: print(f"scipy MILP rejected the problem: {e}")
        return _failed(Status.INVALID_INPUT, n, m)

    status = Status.from_scipy(result.status)
    if not status.is_successful or result.x is None:
        if verbose: print(f"scipy MILP failed: {result.message}")
        return _failed(status if not status.is_successful else Status.NUMERICAL_ERROR, n, m)

    return SolveResult(status=status, objective=float(result.fun), x=np.asarray(result.x),
                       y=np.full(m, np.nan), iterations=int(getattr(result, 'mip_node_count', 0) or 0),
                       solve_time=0.0)


def _solve_qp(c, A, P, lb, ub, constr_l, constr_u, params):
    from scipy.optimize import minimize

    n, m = len(c), A.shape[0]
    verbose = params.get('verbose', False)
    max_iters = int(params.get('max_iterations', params.get('max_iters', 1000)))
    tol = float(params.get('tolerance', params.get('tol', 1e-9)))

    P_dense = P.toarray() if sparse.issparse(P) else np.asarray(P)
    constraints = []
    eq_mask = np.isfinite(constr_l) & np.isfinite(constr_u) & (np.abs(constr_l - constr_u) < 1e-10)
    if eq_mask.any():
        A_eq, b_eq = A[eq_mask], constr_l[eq_mask]
        constraints.append({'type': 'eq', 'fun': lambda x, A=A_eq, b=b_eq: A @ x - b, 'jac': lambda x, A=A_eq: A})
    lower = ~eq_mask & np.isfinite(constr_l)
    if lower.any():
        A_lo, l_lo = A[lower], constr_l[lower]
        constraints.append({'type': 'ineq', 'fun': lambda x, A=A_lo, l=l_lo: A @ x - l, 'jac': lambda x, A=A_lo: A})
    upper = ~eq_mask & np.isfinite(constr_u)
    if upper.any():
        A_up, u_up = A[upper], constr_u[upper]
        constraints.append({'type': 'ineq', 'fun': lambda x, A=A_up, u=u_up: u - A @ x, 'jac': lambda x, A=A_up: -A})

    bounds = [(l if np.isfinite(l) else None, u if np.isfinite(u) else None) for l, u in zip(lb, ub)]
    x0 = np.zeros(n)
    x0 = np.where(np.isfinite(lb), np.maximum(x0, lb), x0)
    x0 = np.where(np.isfinite(ub), np.minimum(x0, ub), x0)

    try:
        result = minimize(lambda x: 0.5 * x @ P_dense @ x + c @ x, x0, method='SLSQP',
                          jac=lambda x: P_dense @ x + c, bounds=bounds, constraints=constraints,
                          options={'maxiter': max_iters, 'ftol': tol, 'disp': bool(verbose)})
    except ValueError as e:
        if verbose: print(f"scipy QP rejected the problem: {e}")
        return _failed(Status.INVALID_INPUT, n, m)

    if result.success:
        status = Status.OPTIMAL
    else:
        status = {4: Status.PRIMAL_INFEASIBLE, 9: Status.MAX_ITERATIONS}.get(result.status, Status.NUMERICAL_ERROR)
        if verbose: print(f"scipy QP failed: {result.message}")
        return _failed(status, n, m)

    return SolveResult(status=status, objective=float(result.fun), x=np.asarray(result.x),
                       y=np.zeros(m), iterations=int(result.nit), solve_time=0.0)
