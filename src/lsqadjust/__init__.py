from importlib.metadata import PackageNotFoundError, version

from lsqadjust.adjust import adjust
from lsqadjust.consider import consider_covariance_inflation, covariance_with_consider_parameters
from lsqadjust.diagnostics import (
    Diagnostic,
    DiagnosticSink,
    LoggingSink,
    NullSink,
    RecordingSink,
    WarningsSink,
)
from lsqadjust.exceptions import (
    DimensionMismatchError,
    IllConditionedWarning,
    InvalidWeightsError,
    LsqAdjustError,
    SingularMatrixError,
)
from lsqadjust.linalg import (
    DEFAULT_MAX_CONDITION_NUMBER,
    SvdDecomposition,
    condition_number,
    condition_number_of_matrix,
    decompose,
    solve_svd,
)
from lsqadjust.normal import (
    covariance_from_inverse,
    inverse_updated_covariance,
    weight_information_matrix,
)
from lsqadjust.polyfit import polynomial_design_matrix, polynomial_fit, polynomial_fit_from_map
from lsqadjust.results import AdjustmentResult
from lsqadjust.vectors import (
    angle_between_vectors,
    cosine_of_angle_between_vectors,
    cross_product_matrix,
    evaluate_second_block_in_state_vector,
    norm_of_vector_difference,
    vector_difference,
    vector_norm,
    vector_norm_from_function,
)

__all__ = [
    "adjust",
    "AdjustmentResult",
    "covariance_with_consider_parameters",
    "consider_covariance_inflation",
    "inverse_updated_covariance",
    "weight_information_matrix",
    "covariance_from_inverse",
    "decompose",
    "condition_number",
    "condition_number_of_matrix",
    "solve_svd",
    "SvdDecomposition",
    "DEFAULT_MAX_CONDITION_NUMBER",
    "polynomial_design_matrix",
    "polynomial_fit",
    "polynomial_fit_from_map",
    "cross_product_matrix",
    "cosine_of_angle_between_vectors",
    "angle_between_vectors",
    "vector_difference",
    "norm_of_vector_difference",
    "vector_norm",
    "evaluate_second_block_in_state_vector",
    "vector_norm_from_function",
    "Diagnostic",
    "DiagnosticSink",
    "WarningsSink",
    "LoggingSink",
    "RecordingSink",
    "NullSink",
    "LsqAdjustError",
    "DimensionMismatchError",
    "InvalidWeightsError",
    "SingularMatrixError",
    "IllConditionedWarning",
    "__version__",
]

try:
    __version__ = version("lsqadjust")
except PackageNotFoundError:  # editable/local
    __version__ = "0.0.0"
