"""
lsqadjust.linalg

Low-level linear algebra for the adjustment engine.

Conventions
-----------
- Observation axis: n
- Parameter axis: k
- Any leading axes are batch axes and broadcast by torch rules.

Shapes
------
- H: (..., n, k)
- r, w: (..., n)
"""
from .inverse import inv_checked, inv_symmetric
from .svd import (
    DEFAULT_MAX_CONDITION_NUMBER,
    SvdDecomposition,
    check_condition_number,
    condition_number,
    condition_number_of_matrix,
    decompose,
    solve_svd,
)

__all__ = [
    "DEFAULT_MAX_CONDITION_NUMBER",
    "SvdDecomposition",
    "check_condition_number",
    "condition_number",
    "condition_number_of_matrix",
    "decompose",
    "inv_checked",
    "inv_symmetric",
    "solve_svd",
]
