"""Identity resolution: map an email + provider linkage onto one Supporter."""

from dataclasses import dataclass

import structlog

from supporter360.db.models.supporter import Supporter
from supporter360.db.repositories.supporter import SupporterRepository
from supporter360.domain.types import SupporterType

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CandidateLinkage:
    """What a provider tells us about the person behind an event."""

    provider: str
    customer_id: str | None
    name: str | None = None
    phone: str | None = None
    supporter_type: SupporterType = SupporterType.UNKNOWN


def normalize_email(email: str | None) -> str | None:
    if not email:
        return None
    normalized = email.strip().lower()
    return normalized or None


def display_name(*parts: str | None) -> str | None:
    """Join name parts with spaces; empty result becomes None."""
    joined = " ".join(p.strip() for p in parts if p and p.strip())
    return joined or None


class IdentityResolver:
    """Find-or-create a Supporter for an email and merge the provider linkage.

    A Supporter already carrying the candidate's provider id wins over an
    email lookup. Shared-email collisions never fail the event: every
    matching Supporter is flagged ``shared_email`` and the oldest one is used.
    """

    def __init__(self, supporters: SupporterRepository):
        self.supporters = supporters

    async def resolve(self, email: str, candidate: CandidateLinkage) -> Supporter:
        normalized = normalize_email(email)
        if normalized is None:
            raise ValueError("resolve() requires a non-empty email")

        if candidate.customer_id:
            linked = await self.supporters.find_by_linked_id(candidate.provider, str(candidate.customer_id))
            if linked is not None:
                if (linked.primary_email or "").lower() != normalized:
                    await self.supporters.add_email_alias(linked.supporter_id, normalized, is_shared=False)
                return await self._link(linked, candidate)

        matches = await self.supporters.find_by_email(normalized)

        if len(matches) > 1:
            logger.warning(
                "shared_email_collision",
                provider=candidate.provider,
                customer_id=candidate.customer_id,
                match_count=len(matches),
                supporter_ids=[str(s.supporter_id) for s in matches],
            )
            for supporter in matches:
                if not (supporter.flags or {}).get("shared_email"):
                    await self.supporters.set_flags(supporter.supporter_id, {"shared_email": True})
            return await self._link(matches[0], candidate)

        if len(matches) == 1:
            return await self._link(matches[0], candidate)

        return await self._create(normalized, candidate)

    async def link(self, supporter: Supporter, candidate: CandidateLinkage) -> Supporter:
        """Attach ``candidate`` to an already-known Supporter."""
        return await self._link(supporter, candidate)

    async def _link(self, supporter: Supporter, candidate: CandidateLinkage) -> Supporter:
        linked_ids = supporter.linked_ids or {}
        if candidate.customer_id and not linked_ids.get(candidate.provider):
            updated = await self.supporters.update_linked_ids(
                supporter.supporter_id, {candidate.provider: str(candidate.customer_id)}
            )
            supporter = updated or supporter
            logger.info(
                "supporter_linked",
                supporter_id=str(supporter.supporter_id),
                provider=candidate.provider,
                customer_id=candidate.customer_id,
            )
        elif candidate.customer_id and linked_ids.get(candidate.provider) != str(candidate.customer_id):
            # Never overwrite an existing linkage; a second customer id is a merge candidate
            logger.warning(
                "supporter_linked_id_conflict",
                supporter_id=str(supporter.supporter_id),
                provider=candidate.provider,
                existing_id=linked_ids.get(candidate.provider),
                candidate_id=candidate.customer_id,
            )

        backfill = {}
        if candidate.name and not supporter.name:
            backfill["name"] = candidate.name
        if candidate.phone and not supporter.phone:
            backfill["phone"] = candidate.phone
        if backfill:
            supporter = await self.supporters.update(supporter.supporter_id, **backfill) or supporter

        return supporter

    async def _create(self, email: str, candidate: CandidateLinkage) -> Supporter:
        linked_ids = {candidate.provider: str(candidate.customer_id)} if candidate.customer_id else {}
        supporter = await self.supporters.create(
            name=candidate.name,
            primary_email=email,
            phone=candidate.phone,
            supporter_type=candidate.supporter_type.value,
            supporter_type_source="auto",
            linked_ids=linked_ids,
        )
        await self.supporters.add_email_alias(supporter.supporter_id, email, is_shared=False)
        logger.info(
            "supporter_created",
            supporter_id=str(supporter.supporter_id),
            provider=candidate.provider,
            customer_id=candidate.customer_id,
        )
        return supporter
