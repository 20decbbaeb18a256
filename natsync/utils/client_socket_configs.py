"""
In `connection.py` config["socket"] selects and tunes the transport.
Isolate that out here.
"""
#pylint:disable=line-too-long

from dataclasses import dataclass
from typing import List, Optional

from ..settings import DEFAULT_CHUNK_SIZE, DEFAULT_READ_TIMEOUT


@dataclass(slots=True)
class SocketConfig:
    """
    The __post_init__ enforces positivity of the sizes and timeouts.
    `merge_in` of dictionaries from json configurations does not raise:
    it gives back a list of strings for the logger to output as errors
    and keeps the previous value for each rejected key.
    """
    non_blocking: bool = True
    chunk_size: int = DEFAULT_CHUNK_SIZE
    read_timeout: float = DEFAULT_READ_TIMEOUT
    connect_timeout: Optional[float] = None

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ValueError("The provided chunk_size must be an integer ≥ 1")
        if self.read_timeout <= 0:
            raise ValueError("The provided read_timeout must be a float > 0.0")
        if self.connect_timeout is not None and self.connect_timeout <= 0:
            raise ValueError("The provided connect_timeout must be None or a float > 0.0")

    def merge_in(self, **kwargs) -> List[str]:
        all_problems = []
        if "non_blocking" in kwargs:
            if not isinstance((z := kwargs["non_blocking"]), bool):
                all_problems.append(f"The provided non_blocking was not a bool. It was {type(z)}")
            else:
                self.non_blocking = z
        if "chunk_size" in kwargs:
            if isinstance((z := kwargs["chunk_size"]), bool) or not isinstance(z, int):
                all_problems.append(f"The provided chunk_size was not an integer. It was {type(z)}")
            elif z <= 0:
                all_problems.append("The provided chunk_size must be an integer ≥ 1")
            else:
                self.chunk_size = z
        if "read_timeout" in kwargs:
            if isinstance((z := kwargs["read_timeout"]), bool) or not isinstance(z, float | int):
                all_problems.append(f"The provided read_timeout was not an integer or a float. It was {type(z)}")
            elif z <= 0:
                all_problems.append(f"The provided read_timeout must be positive. It was {z}")
            else:
                self.read_timeout = float(z)
        if "connect_timeout" in kwargs:
            z = kwargs["connect_timeout"]
            if z is None:
                self.connect_timeout = None
            elif isinstance(z, bool) or not isinstance(z, float | int):
                all_problems.append(f"The provided connect_timeout was not an optional float. It was {type(z)}")
            elif z <= 0:
                all_problems.append(f"The provided connect_timeout must be positive. It was {z}")
            else:
                self.connect_timeout = float(z)
        return all_problems
