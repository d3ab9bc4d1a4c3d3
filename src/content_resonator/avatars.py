"""Decorative avatar assignment for generated personas."""

from __future__ import annotations

import random
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from .models import Persona

AVATAR_POOL: Tuple[str, ...] = (
    "avatar1",
    "avatar2",
    "avatar3",
    "avatar4",
    "avatar5",
    "avatar6",
)


def assign_avatars(
    personas: Sequence[Persona],
    *,
    pool: Sequence[str] = AVATAR_POOL,
    rng: Optional[random.Random] = None,
) -> List[Persona]:
    """Give a slate distinct avatars, wrapping around once the pool runs out."""

    if not pool:
        return list(personas)
    shuffled = list(pool)
    (rng or random).shuffle(shuffled)
    return [
        replace(persona, avatar=shuffled[index % len(shuffled)])
        for index, persona in enumerate(personas)
    ]


def with_random_avatar(
    persona: Persona,
    *,
    pool: Sequence[str] = AVATAR_POOL,
    rng: Optional[random.Random] = None,
) -> Persona:
    if not pool:
        return persona
    return replace(persona, avatar=(rng or random).choice(list(pool)))
