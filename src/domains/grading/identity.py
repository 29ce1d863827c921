# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Conversion between student profile ids and authentication identity ids.

Enrollments reference student profiles, attempts reference authentication
identities. IdentityMapper is the single place where one is turned into
the other.
"""

import logging
from collections.abc import Iterable

from src.infrastructure.repository import AcademicRepository
from src.models import IdentityId, ProfileId

logger = logging.getLogger(__name__)


class IdentityMapper:
    """Resolves profile ids to identity ids.

    Attributes:
        repository: Academic data source.
    """

    def __init__(self, repository: AcademicRepository) -> None:
        self.repository = repository

    async def resolve(self, profile_ids: Iterable[ProfileId]) -> dict[ProfileId, IdentityId]:
        """Map profile ids to identity ids.

        Profiles without an identity are dropped from the result. Callers
        treat such students as having zero attempts.

        Args:
            profile_ids: Student profile ids.

        Returns:
            Mapping ordered by profile id.
        """
        wanted = set(profile_ids)
        if not wanted:
            return {}

        raw = await self.repository.get_profile_to_identity_map(wanted)
        mapping = {
            profile_id: raw[profile_id]
            for profile_id in sorted(wanted)
            if raw.get(profile_id)
        }

        dropped = len(wanted) - len(mapping)
        if dropped:
            logger.debug(
                "Dropped %d of %d profiles without identity mapping",
                dropped,
                len(wanted),
            )
        return mapping

    @staticmethod
    def invert(mapping: dict[ProfileId, IdentityId]) -> dict[IdentityId, ProfileId]:
        """Reverse a resolved mapping to look up profiles from attempts."""
        return {identity_id: profile_id for profile_id, identity_id in mapping.items()}
