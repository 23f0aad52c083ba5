"""
polysddp Model Builder
======================

Algebraic interface for building the per-stage LP/MIP/QP models used by SDDP.

Besides plain model building, a ``Model`` exposes what the SDDP core needs
from a live optimization model: named variable groups (``model["x"]``),
fixing variables, overwriting constraint right-hand sides, reading and
replacing the objective, and tagging constraints in groups (``"state"``,
``"cuts"``) so their duals can be read back after a solve.
"""

import copy
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import numpy as np
from scipy import sparse

from .exceptions import DimensionError, InvalidInputError
from .result import SolveResult

Number = Union[int, float, np.floating]


@dataclass
class Variable:
    """
    Decision variable in an optimization model.

    Attributes:
        index: Internal index in the model
        lb: Lower bound (default: 0)
        ub: Upper bound (default: +inf)
        name: Optional name for the variable
        integer: Whether the variable is integer constrained

    Example:
        >>> model = Model()
        >>> x = model.add_var(lb=0, ub=10, name="x")
        >>> n = model.add_var(lb=0, ub=3, name="n", integer=True)
    """

    index: int
    lb: float = 0.0
    ub: float = float("inf")
    name: Optional[str] = None
    integer: bool = False

    # Keep numpy scalars from swallowing the reflected operators below
    __array_ufunc__ = None

    def __repr__(self) -> str:
        if self.name:
            return f"Variable({self.name})"
        return f"Variable(x_{self.index})"

    @property
    def is_fixed(self) -> bool:
        return self.lb == self.ub

    # Operator overloading for algebraic syntax
    def __add__(self, other: Union["Variable", "LinearExpr", Number]) -> "LinearExpr":
        return LinearExpr.from_var(self) + other

    def __radd__(self, other: Union["Variable", "LinearExpr", Number]) -> "LinearExpr":
        return self.__add__(other)

    def __sub__(self, other: Union["Variable", "LinearExpr", Number]) -> "LinearExpr":
        return LinearExpr.from_var(self) - other

    def __rsub__(self, other: Union["Variable", "LinearExpr", Number]) -> "LinearExpr":
        return (-1) * LinearExpr.from_var(self) + other

    def __mul__(self, other):
        if isinstance(other, (Variable, LinearExpr)):
            return LinearExpr.from_var(self) * other
        return LinearExpr.from_var(self, coef=float(other))

    def __rmul__(self, other):
        return self.__mul__(other)

    def __neg__(self) -> "LinearExpr":
        return self.__mul__(-1)

    def __truediv__(self, other: Number) -> "LinearExpr":
        return self.__mul__(1.0 / other)

    # Comparison operators for constraints
    def __le__(self, other: Union["Variable", "LinearExpr", Number]) -> "Constraint":
        return LinearExpr.from_var(self) <= other

    def __ge__(self, other: Union["Variable", "LinearExpr", Number]) -> "Constraint":
        return LinearExpr.from_var(self) >= other

    def __eq__(self, other: Union["Variable", "LinearExpr", Number]) -> "Constraint":
        return LinearExpr.from_var(self).__eq__(other)


@dataclass
class LinearExpr:
    """
    Linear expression: sum of coefficient * variable + constant.

    Example:
        >>> expr = 2*x + 3*y + 5
        >>> print(expr)
        2*x + 3*y + 5
    """

    terms: Dict[int, float] = field(default_factory=dict)  # var_index -> coefficient
    constant: float = 0.0
    _var_names: Dict[int, str] = field(default_factory=dict)  # For pretty printing

    __array_ufunc__ = None

    @classmethod
    def from_var(cls, var: Variable, coef: float = 1.0) -> "LinearExpr":
        """Create expression from a single variable."""
        expr = cls()
        expr.terms[var.index] = coef
        if var.name:
            expr._var_names[var.index] = var.name
        return expr

    def __repr__(self) -> str:
        parts = []
        for idx, coef in sorted(self.terms.items()):
            name = self._var_names.get(idx, f"x_{idx}")
            if coef == 1:
                parts.append(name)
            elif coef == -1:
                parts.append(f"-{name}")
            else:
                parts.append(f"{coef}*{name}")
        if self.constant != 0 or not parts:
            parts.append(str(self.constant))
        return " + ".join(parts).replace("+ -", "- ")

    def value(self, x: np.ndarray) -> float:
        """Evaluate the expression at a primal solution vector."""
        return self.constant + sum(coef * x[idx] for idx, coef in self.terms.items())

    def __add__(self, other):
        if isinstance(other, QuadExpr):
            return other + self
        result = LinearExpr(dict(self.terms), self.constant, dict(self._var_names))
        if isinstance(other, Variable):
            result.terms[other.index] = result.terms.get(other.index, 0) + 1
            if other.name:
                result._var_names[other.index] = other.name
        elif isinstance(other, LinearExpr):
            for idx, coef in other.terms.items():
                result.terms[idx] = result.terms.get(idx, 0) + coef
            result._var_names.update(other._var_names)
            result.constant += other.constant
        else:
            result.constant += float(other)
        return result

    def __radd__(self, other):
        return self.__add__(other)

    def __sub__(self, other):
        if isinstance(other, (Variable, LinearExpr, QuadExpr)):
            return self + (-1) * other
        return self + (-float(other))

    def __rsub__(self, other):
        return (-1) * self + other

    def __mul__(self, other):
        if isinstance(other, Variable):
            other = LinearExpr.from_var(other)
        if isinstance(other, LinearExpr):
            return QuadExpr.from_product(self, other)
        other = float(other)
        return LinearExpr(
            {k: v * other for k, v in self.terms.items()},
            self.constant * other,
            dict(self._var_names),
        )

    def __rmul__(self, other):
        return self.__mul__(other)

    def __neg__(self) -> "LinearExpr":
        return self.__mul__(-1)

    def __truediv__(self, other: Number) -> "LinearExpr":
        return self.__mul__(1.0 / other)

    def _compare(self, other, sense: str) -> "Constraint":
        if isinstance(other, Variable):
            other = LinearExpr.from_var(other)
        elif not isinstance(other, LinearExpr):
            other = LinearExpr(constant=float(other))
        lhs = self - other
        # Constants live on the right-hand side so set_rhs() can overwrite them
        rhs = -lhs.constant
        lhs.constant = 0.0
        return Constraint(lhs, sense, rhs)

    # Comparison operators for constraints
    def __le__(self, other) -> "Constraint":
        return self._compare(other, "<=")

    def __ge__(self, other) -> "Constraint":
        return self._compare(other, ">=")

    def __eq__(self, other) -> "Constraint":
        return self._compare(other, "==")


@dataclass
class QuadExpr:
    """
    Quadratic expression: sum of coef * x_i * x_j plus a linear part.

    Only used in objectives, e.g. for regularization penalties:

        >>> penalty = rho * (xf - xp) * (xf - xp)
    """

    quad_terms: Dict[Tuple[int, int], float] = field(default_factory=dict)
    linear: LinearExpr = field(default_factory=LinearExpr)

    __array_ufunc__ = None

    @classmethod
    def from_product(cls, a: LinearExpr, b: LinearExpr) -> "QuadExpr":
        """Expand the product of two linear expressions."""
        quad: Dict[Tuple[int, int], float] = {}
        for i, ci in a.terms.items():
            for j, cj in b.terms.items():
                key = (min(i, j), max(i, j))
                quad[key] = quad.get(key, 0.0) + ci * cj
        linear = a.constant * LinearExpr(dict(b.terms), 0.0, dict(b._var_names))
        linear = linear + b.constant * LinearExpr(dict(a.terms), 0.0, dict(a._var_names))
        linear.constant = a.constant * b.constant
        return cls(quad, linear)

    @property
    def constant(self) -> float:
        return self.linear.constant

    def __repr__(self) -> str:
        quad = " + ".join(f"{c}*x_{i}*x_{j}" for (i, j), c in sorted(self.quad_terms.items()))
        return f"{quad} + {self.linear}" if quad else repr(self.linear)

    def value(self, x: np.ndarray) -> float:
        return self.linear.value(x) + sum(c * x[i] * x[j] for (i, j), c in self.quad_terms.items())

    def __add__(self, other) -> "QuadExpr":
        quad = dict(self.quad_terms)
        if isinstance(other, QuadExpr):
            for key, coef in other.quad_terms.items():
                quad[key] = quad.get(key, 0.0) + coef
            return QuadExpr(quad, self.linear + other.linear)
        return QuadExpr(quad, self.linear + other)

    def __radd__(self, other) -> "QuadExpr":
        return self.__add__(other)

    def __sub__(self, other) -> "QuadExpr":
        return self + (-1) * other

    def __rsub__(self, other) -> "QuadExpr":
        return (-1) * self + other

    def __mul__(self, other: Number) -> "QuadExpr":
        other = float(other)
        return QuadExpr(
            {k: v * other for k, v in self.quad_terms.items()},
            self.linear * other,
        )

    def __rmul__(self, other: Number) -> "QuadExpr":
        return self.__mul__(other)

    def __neg__(self) -> "QuadExpr":
        return self.__mul__(-1)


@dataclass
class Constraint:
    """
    Linear constraint in an optimization model.

    Represents: lhs sense rhs (e.g., 2*x + 3*y <= 10)

    Attributes:
        lhs: Left-hand side linear expression (no constant term)
        sense: Constraint sense ("<=", ">=", "==")
        rhs: Right-hand side constant
        name: Optional constraint name
        index: Internal index (set when added to model)
    """

    lhs: LinearExpr
    sense: str  # "<=", ">=", "=="
    rhs: float
    name: Optional[str] = None
    index: int = -1

    def __post_init__(self):
        if self.sense not in ("<=", ">=", "=="):
            raise InvalidInputError(f"unknown constraint sense '{self.sense}'")

    def __repr__(self) -> str:
        name_str = f"{self.name}: " if self.name else ""
        return f"{name_str}{self.lhs} {self.sense} {self.rhs}"


class Model:
    """
    Optimization model builder with algebraic syntax.

    Supports Linear Programs (LP), Mixed-Integer LPs and convex Quadratic
    Programs (QP).

    Example:
        >>> model = Model()
        >>> x = model.add_var(lb=0, ub=10, name="x")
        >>> y = model.add_var(lb=0, name="y")
        >>> model.add_constr(x + 2*y <= 20, name="capacity")
        >>> model.add_constr(3*x + y <= 30, name="labor")
        >>> model.minimize(-5*x - 4*y)
        >>> result = model.solve()
        >>> print(result.objective)
        -46.0

    Variables and constraints can be registered under a name so that the
    SDDP routines can find them again:

        >>> x = model.add_vars(2, lb=-np.inf, group="x")
        >>> model["x"]
        array([Variable(x_0), Variable(x_1)], dtype=object)

    A model is not safe to mutate from several threads at once; hold
    ``model.lock`` around any fix/solve/read-back sequence, or work on
    ``model.copy()``.
    """

    def __init__(self, name: str = ""):
        """
        Create a new optimization model.

        Args:
            name: Optional model name
        """
        self.name = name
        self._vars: List[Variable] = []
        self._constrs: List[Constraint] = []
        self._objective: Union[LinearExpr, QuadExpr] = LinearExpr()
        self._var_groups: Dict[str, np.ndarray] = {}
        self._constr_groups: Dict[str, List[Constraint]] = {}
        self.lock = threading.RLock()

    @property
    def num_vars(self) -> int:
        """Number of variables in the model."""
        return len(self._vars)

    @property
    def num_constrs(self) -> int:
        """Number of constraints in the model."""
        return len(self._constrs)

    @property
    def num_cuts(self) -> int:
        """Number of constraints registered in the ``"cuts"`` group."""
        return len(self._constr_groups.get("cuts", []))

    @property
    def is_mixed_integer(self) -> bool:
        return any(v.integer for v in self._vars)

    def add_var(
        self,
        lb: float = 0.0,
        ub: float = float("inf"),
        name: Optional[str] = None,
        integer: bool = False,
    ) -> Variable:
        """
        Add a single decision variable to the model.

        Args:
            lb: Lower bound (default: 0)
            ub: Upper bound (default: +inf)
            name: Variable name
            integer: Integer constrained variable

        Returns:
            The created Variable object
        """
        var = Variable(
            index=len(self._vars),
            lb=float(lb),
            ub=float(ub),
            name=name,
            integer=integer,
        )
        self._vars.append(var)
        return var

    def add_vars(
        self,
        count: int,
        lb: Union[float, np.ndarray] = 0.0,
        ub: Union[float, np.ndarray] = float("inf"),
        name_prefix: str = "x",
        integer: Union[bool, Iterable[bool]] = False,
        group: Optional[str] = None,
    ) -> List[Variable]:
        """
        Add multiple decision variables to the model.

        Args:
            count: Number of variables to add
            lb: Lower bound(s) - scalar or array
            ub: Upper bound(s) - scalar or array
            name_prefix: Prefix for variable names
            integer: Integer flag(s) - scalar or iterable
            group: Register the variables under this name

        Returns:
            List of created Variable objects
        """
        lb = np.asarray(lb, dtype=np.float64)
        ub = np.asarray(ub, dtype=np.float64)
        if lb.ndim and len(lb) != count:
            raise DimensionError(f"lb has length {len(lb)}, expected {count}")
        if ub.ndim and len(ub) != count:
            raise DimensionError(f"ub has length {len(ub)}, expected {count}")
        flags = [bool(integer)] * count if isinstance(integer, bool) else list(integer)
        if len(flags) != count:
            raise DimensionError(f"integer has length {len(flags)}, expected {count}")

        vars = []
        for i in range(count):
            lb_i = lb[i] if lb.ndim else lb
            ub_i = ub[i] if ub.ndim else ub
            var = self.add_var(lb=lb_i, ub=ub_i, name=f"{name_prefix}_{i}", integer=flags[i])
            vars.append(var)
        if group is not None:
            self.register(group, vars)
        return vars

    def register(self, name: str, vars: Any) -> np.ndarray:
        """Register variables (any array shape) under a group name."""
        arr = np.empty(np.shape(vars), dtype=object)
        for pos, var in np.ndenumerate(np.asarray(vars, dtype=object)):
            arr[pos] = var
        self._var_groups[name] = arr
        return arr

    def __getitem__(self, name: str) -> np.ndarray:
        try:
            return self._var_groups[name]
        except KeyError:
            raise KeyError(f"model has no variable group '{name}'") from None

    def __contains__(self, name: str) -> bool:
        return name in self._var_groups

    def add_constr(
        self,
        constraint: Constraint,
        name: Optional[str] = None,
        group: Optional[str] = None,
    ) -> Constraint:
        """
        Add a constraint to the model.

        Args:
            constraint: Constraint object (from comparison operators)
            name: Optional constraint name
            group: Optional group the constraint is registered in

        Returns:
            The added Constraint object

        Example:
            >>> model.add_constr(x + 2*y <= 20, name="capacity")
        """
        if not isinstance(constraint, Constraint):
            raise InvalidInputError(
                f"expected a Constraint, got {type(constraint).__name__}"
            )
        if name:
            constraint.name = name
        constraint.index = len(self._constrs)
        self._constrs.append(constraint)
        if group is not None:
            self._constr_groups.setdefault(group, []).append(constraint)
        return constraint

    def add_constrs(
        self,
        constraints: Iterable[Constraint],
        group: Optional[str] = None,
    ) -> List[Constraint]:
        """
        Add multiple constraints to the model.

        Args:
            constraints: Iterable of Constraint objects
            group: Optional group the constraints are registered in

        Returns:
            List of added Constraint objects
        """
        return [self.add_constr(c, group=group) for c in constraints]

    def constraints(self, group: str) -> List[Constraint]:
        """Constraints registered in ``group`` (empty list if none)."""
        return list(self._constr_groups.get(group, []))

    def fix(self, var: Union[Variable, np.ndarray], value: Union[Number, np.ndarray]) -> None:
        """
        Fix variable(s) to a value by collapsing their bounds.

        Args:
            var: Variable or array of variables
            value: Scalar or array with the same shape as ``var``
        """
        if isinstance(var, Variable):
            var.lb = var.ub = float(value)
            return
        vars = np.asarray(var, dtype=object)
        values = np.broadcast_to(np.asarray(value, dtype=np.float64), vars.shape)
        for pos, v in np.ndenumerate(vars):
            v.lb = v.ub = float(values[pos])

    def set_rhs(self, constr: Constraint, value: Number) -> None:
        """Overwrite the right-hand side of a constraint."""
        constr.rhs = float(value)

    @property
    def objective(self) -> Union[LinearExpr, QuadExpr]:
        """Current objective expression (minimized)."""
        return self._objective

    @objective.setter
    def objective(self, expr: Union[LinearExpr, QuadExpr, Variable, Number]) -> None:
        self._objective = self._to_expr(expr)

    def minimize(self, expr: Union[LinearExpr, QuadExpr, Variable, Number]) -> None:
        """
        Set the objective to minimize.

        Args:
            expr: Linear or quadratic expression to minimize
        """
        self._objective = self._to_expr(expr)

    def _to_expr(self, expr) -> Union[LinearExpr, QuadExpr]:
        """Convert various types to LinearExpr."""
        if isinstance(expr, (LinearExpr, QuadExpr)):
            return expr
        elif isinstance(expr, Variable):
            return LinearExpr.from_var(expr)
        else:
            return LinearExpr(constant=float(expr))

    def solve(
        self,
        params: Optional[Dict[str, Any]] = None,
        relax_integer: bool = False,
    ) -> SolveResult:
        """
        Solve the optimization model.

        Args:
            params: Solver parameters (method, time_limit, tolerance, ...)
            relax_integer: Drop integrality restrictions (LP relaxation)

        Returns:
            SolveResult with status, objective, solution and duals
        """
        from .solver import solve

        form = self._to_standard_form()
        integrality = None if relax_integer else form["integrality"]

        return solve(
            c=form["c"],
            A=form["A"],
            P=form["P"],
            lb=form["lb"],
            ub=form["ub"],
            constraint_l=form["constraint_l"],
            constraint_u=form["constraint_u"],
            integrality=integrality,
            offset=form["offset"],
            params=params,
        )

    def _to_standard_form(self) -> Dict[str, Any]:
        """
        Convert model to standard matrix form.

        Returns:
            dict with c, offset, P, A, constraint_l, constraint_u, lb, ub,
            integrality
        """
        n = self.num_vars
        m = self.num_constrs

        # Objective
        objective = self._objective
        linear = objective.linear if isinstance(objective, QuadExpr) else objective
        c = np.zeros(n)
        for idx, coef in linear.terms.items():
            c[idx] += coef
        offset = linear.constant

        P = None
        if isinstance(objective, QuadExpr) and objective.quad_terms:
            rows, cols, data = [], [], []
            for (i, j), coef in objective.quad_terms.items():
                if i == j:
                    rows.append(i)
                    cols.append(i)
                    data.append(2.0 * coef)
                else:
                    rows.extend([i, j])
                    cols.extend([j, i])
                    data.extend([coef, coef])
            P = sparse.csr_matrix((data, (rows, cols)), shape=(n, n))

        # Bounds
        lb = np.array([v.lb for v in self._vars], dtype=np.float64)
        ub = np.array([v.ub for v in self._vars], dtype=np.float64)
        integrality = np.array([1 if v.integer else 0 for v in self._vars], dtype=int)

        # Constraints
        rows, cols, data = [], [], []
        constraint_l = np.full(m, -np.inf)
        constraint_u = np.full(m, np.inf)
        for i, constr in enumerate(self._constrs):
            for idx, coef in constr.lhs.terms.items():
                rows.append(i)
                cols.append(idx)
                data.append(coef)
            rhs = constr.rhs - constr.lhs.constant
            if constr.sense in ("<=", "=="):
                constraint_u[i] = rhs
            if constr.sense in (">=", "=="):
                constraint_l[i] = rhs
        A = sparse.csr_matrix((data, (rows, cols)), shape=(m, n))

        return {
            "c": c,
            "offset": offset,
            "P": P,
            "A": A,
            "constraint_l": constraint_l,
            "constraint_u": constraint_u,
            "lb": lb,
            "ub": ub,
            "integrality": integrality,
        }

    def copy(self) -> "Model":
        """
        Return an independent deep copy of the model.

        Variable groups and constraint groups of the copy point to the
        copy's own variables and constraints, so fixing or re-solving the
        copy never touches the original. The copy gets a fresh lock.
        """
        with self.lock:
            clone = Model(name=self.name)
            clone._vars = copy.deepcopy(self._vars)
            clone._constrs = copy.deepcopy(self._constrs)
            clone._objective = copy.deepcopy(self._objective)
            for name, group in self._var_groups.items():
                arr = np.empty(group.shape, dtype=object)
                for pos, var in np.ndenumerate(group):
                    arr[pos] = clone._vars[var.index]
                clone._var_groups[name] = arr
            for name, group in self._constr_groups.items():
                clone._constr_groups[name] = [clone._constrs[c.index] for c in group]
        return clone

    def display(self) -> str:
        """Human readable listing of objective, constraints and bounds."""
        lines = [f"Model {self.name!r}", f"  minimize {self._objective}", "  subject to"]
        lines.extend(f"    {c}" for c in self._constrs)
        lines.append("  bounds")
        for v in self._vars:
            kind = " (int)" if v.integer else ""
            lines.append(f"    {v.lb} <= {v!r} <= {v.ub}{kind}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"Model(vars={self.num_vars}, constrs={self.num_constrs}, cuts={self.num_cuts})"
