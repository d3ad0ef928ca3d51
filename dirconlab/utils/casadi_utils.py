import logging
from typing import Any, cast

import casadi as ca
import numpy as np

from dirconlab.exceptions import DataIntegrityError
from dirconlab.dl_types import FloatArray


logger = logging.getLogger(__name__)


def as_casadi_mx(value: Any) -> ca.MX:
    """Promote a symbolic expression or numeric array to a CasADi MX column/matrix.

    Numeric 1-D inputs become column vectors; CasADi expressions pass through.
    """
    if isinstance(value, ca.MX):
        return value
    if isinstance(value, ca.SX):
        raise DataIntegrityError(
            "SX expressions cannot be mixed with MX decision variables",
            "CasADi expression conversion",
        )
    if isinstance(value, ca.DM):
        return ca.MX(value)
    array = np.asarray(value, dtype=np.float64)
    if array.ndim == 0:
        array = array.reshape(1)
    return ca.MX(ca.DM(array))


def casadi_to_numpy(value: Any, name: str = "value") -> FloatArray:
    """Convert a numeric CasADi result (DM, float or array) to a flat NumPy array.

    Args:
        value: Numeric CasADi output
        name: Name used in error messages

    Returns:
        FloatArray: Flattened float64 array

    Raises:
        DataIntegrityError: The value is symbolic or contains NaN/Inf
    """
    if isinstance(value, ca.MX | ca.SX):
        if not value.is_constant():
            raise DataIntegrityError(
                f"{name} is symbolic and cannot be converted to numbers",
                "CasADi to NumPy conversion",
            )
        value = ca.evalf(value)

    if isinstance(value, ca.DM):
        result = cast(FloatArray, np.array(value.full(), dtype=np.float64).flatten(order="F"))
    else:
        result = cast(FloatArray, np.atleast_1d(np.asarray(value, dtype=np.float64)).flatten())

    # Validation at external boundary catches CasADi numerical corruption
    if np.any(np.isnan(result)) or np.any(np.isinf(result)):
        raise DataIntegrityError(
            f"{name} contains NaN or Inf values", "Numerical corruption in CasADi result"
        )
    return result
