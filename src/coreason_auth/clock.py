# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_auth

"""
Injectable time and unique-id sources.

Every expiry decision goes through a `Clock`, and every token id through an `IdFactory`,
so tests can pin both.
"""

import time
import uuid
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Callable returning seconds since the UNIX epoch."""

    def __call__(self) -> float: ...


@runtime_checkable
class IdFactory(Protocol):
    """Callable returning a fresh unique identifier."""

    def __call__(self) -> str: ...


def system_clock() -> float:
    """Default clock, delegating to ``time.time()``."""
    return time.time()


def uuid4_factory() -> str:
    """Default id factory producing random UUID4 strings."""
    return str(uuid.uuid4())


def now_seconds(clock: Clock) -> int:
    """
    Returns the clock's current time truncated to whole seconds.

    Args:
        clock: The time source.

    Returns:
        int: Unix time in seconds.
    """
    return int(clock())
