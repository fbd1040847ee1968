"""Error handling for ctxretry.

- Result/Ok/Err: failures returned as data by retried operations
- try_fn/try_async: adapters from raising callables to Results
- FaultCode/RetryFault/RetryFaultError: fatal programmer faults
"""

from .errors import (
    ConfigurationError,
    FaultCode,
    InvariantError,
    RetryFault,
    RetryFaultError,
)
from .result import Err, Ok, Result, try_async, try_fn

__all__ = [
    # Result
    "Result", "Ok", "Err", "try_fn", "try_async",
    # Faults
    "FaultCode", "RetryFault", "RetryFaultError", "ConfigurationError", "InvariantError",
]
