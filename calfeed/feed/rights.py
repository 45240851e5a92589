"""Access-code helpers for feed log entries."""

from __future__ import annotations

import re
from typing import Iterable

from .models import ALL_USERS_CODE, AUTHORIZED_USERS_CODE

_GROUP_CODE = re.compile(r"^SG[0-9]+$")


def unique_codes(codes: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(codes))


def replace_all_users(codes: Iterable[str]) -> list[str]:
    """Map the "all users" code to the authorized-users group."""

    return unique_codes(AUTHORIZED_USERS_CODE if code == ALL_USERS_CODE else code for code in codes)


def expand_access_codes(codes: Iterable[str]) -> list[str]:
    """Rights list of a log entry: each group code is preceded by its ``_K`` variant."""

    expanded: list[str] = []
    for code in codes:
        if _GROUP_CODE.match(code):
            expanded.append(f"{code}_K")
        expanded.append(code)
    return unique_codes(expanded)
