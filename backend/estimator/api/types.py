from __future__ import annotations

from typing import Annotated

from fastapi import Query

GeocodeQuery = Annotated[
    str,
    Query(
        min_length=1,
        max_length=200,
        description="Free-text address or place name",
    ),
]

GeocodeLimit = Annotated[
    int,
    Query(ge=1, le=10, description="Maximum number of candidates"),
]
