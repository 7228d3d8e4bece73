"""
**Error Kinds and Error Policy**

Every failure of a filter call is local to that call. Failures are reported as
exceptions carrying an `ErrorKind` and the name of the function that failed.
Instead of a process-wide error mode, each public call takes an explicit
`errors` policy:

- `"raise"`  -> raise the exception (default)
- `"return"` -> print the message and return `None` to the caller

Example:
```python
out = rlsf.filter_ms_rlsf(img, r=2, errors="return")
if out is None:
    ...
```

Public API:
- ErrorKind
- RLSFError
- InvalidArgumentError
- OutOfMemoryError
- check_error_policy(...)
- handle_error(...)
"""



# ---------------
# >>> Imports <<<
# ---------------
from __future__ import annotations

from enum import Enum



# ---------------------
# >>> Error Types <<<
# ---------------------

class ErrorKind(Enum):
    INVALID_ARGUMENT = "invalid argument"
    OUT_OF_MEMORY = "insufficient memory"



class RLSFError(Exception):
    """
    Base class of all errors raised by img_rlsf.

    Attributes:
    - kind (ErrorKind): the category of the failure.
    - func_name (str): the public function that failed.
    - reason (str): human readable description without the prefix.
    """
    kind: ErrorKind = None

    def __init__(self, func_name: str, reason: str):
        self.func_name = func_name
        self.reason = reason
        super().__init__(f"Error in {func_name}: {reason}")



class InvalidArgumentError(RLSFError, ValueError):
    kind = ErrorKind.INVALID_ARGUMENT



class OutOfMemoryError(RLSFError, MemoryError):
    kind = ErrorKind.OUT_OF_MEMORY



# --------------------
# >>> Error Policy <<<
# --------------------

ERROR_POLICIES = ("raise", "return")


def check_error_policy(errors: str) -> None:
    if errors not in ERROR_POLICIES:
        raise ValueError(f"Unknown error policy '{errors}', expected one of {ERROR_POLICIES}.")



def handle_error(error: RLSFError, errors: str = "raise"):
    """
    Apply the caller's error policy to an error.

    Parameters:
    - error (RLSFError): <br>
        The error that ended the call.
    - errors (str): <br>
        "raise" re-raises the error, "return" prints it and returns None.

    Returns:
    - None: <br>
        Only when the policy is "return".
    """
    if errors == "return":
        print(f"[ERROR] {error}")
        return None
    raise error
