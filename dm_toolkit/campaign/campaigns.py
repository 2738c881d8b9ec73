"""Campaign records that scope encounters, combats and tables."""

import logging
from typing import Any, Mapping

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ..database.models import Campaign
from ..database.session import CampaignStore
from ..errors import InvalidPayload, NotFound
from ..payloads import ensure_json
from ..summaries import make_summary
from .events import CampaignEvent, EventSink, LoggingEventSink, publish

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("title", "system", "premise", "tone")
LIST_LIMIT = 50


def require_campaign(session: Session, campaign_id: int) -> Campaign:
    """Load a campaign or raise NotFound."""
    campaign = session.get(Campaign, campaign_id)
    if campaign is None:
        raise NotFound(f"Campaign {campaign_id} not found")
    return campaign


class CampaignManager:
    """Creates and reads campaigns."""

    def __init__(self, store: CampaignStore, events: EventSink | None = None):
        self.store = store
        self.events = events or LoggingEventSink()

    def create_campaign(
        self,
        title: str,
        system: str = "5e",
        premise: str | None = None,
        tone: str | None = None,
    ) -> dict[str, Any]:
        """Create a campaign.

        Args:
            title: Campaign title (required)
            system: Rules system label
            premise: Optional premise text
            tone: Optional tone description

        Returns:
            The created campaign as a dict
        """
        if not title or not title.strip():
            raise InvalidPayload("Campaign title is required")

        def work(session: Session) -> dict[str, Any]:
            campaign = Campaign(title=title.strip(), system=system, premise=premise, tone=tone)
            session.add(campaign)
            session.flush()
            return campaign.to_dict()

        created = self.store.run(work).unwrap()
        logger.info(f"Created campaign {created['id']} ({created['title']})")
        publish(
            self.events,
            CampaignEvent(
                campaign_id=created["id"],
                type="campaign.create",
                summary=make_summary("Campaign created", created["title"], system),
                payload={"campaign_id": created["id"]},
            )
        )
        return created

    def get_campaign(self, campaign_id: int) -> dict[str, Any]:
        """Read a campaign with counts of what it holds."""
        with self.store.transaction() as session:
            campaign = require_campaign(session, campaign_id)
            data = campaign.to_dict()
            data["counts"] = {
                "encounters": len(campaign.encounters),
                "combats": len(campaign.combats),
                "random_tables": len(campaign.random_tables),
                "events": len(campaign.events),
            }
            return data

    def update_campaign(self, campaign_id: int, patch: Mapping[str, Any]) -> dict[str, Any]:
        """Change some of a campaign's fields.

        Args:
            campaign_id: Campaign to update
            patch: New values for any of title, system, premise and tone

        Returns:
            The updated campaign as a dict

        Raises:
            InvalidPayload: If the patch is empty, names an unknown field or blanks the title
            NotFound: If the campaign does not exist
        """
        if not isinstance(patch, Mapping) or not patch:
            raise InvalidPayload("patch must include at least one field")
        unknown = sorted(set(patch) - set(UPDATABLE_FIELDS))
        if unknown:
            raise InvalidPayload(f"Cannot update campaign fields: {', '.join(unknown)}")
        if "title" in patch and not (isinstance(patch["title"], str) and patch["title"].strip()):
            raise InvalidPayload("Campaign title cannot be blank")
        patch = ensure_json(dict(patch), "patch")

        def work(session: Session) -> dict[str, Any]:
            campaign = require_campaign(session, campaign_id)
            for key, value in patch.items():
                setattr(campaign, key, value.strip() if key == "title" else value)
            session.flush()
            return campaign.to_dict()

        updated = self.store.run(work).unwrap()
        summary = make_summary("Campaign updated", updated["title"], ", ".join(sorted(patch)))
        logger.info(summary)
        publish(
            self.events,
            CampaignEvent(
                campaign_id=campaign_id,
                type="campaign.update",
                summary=summary,
                payload=dict(patch),
            )
        )
        return updated

    def list_campaigns(self, q: str | None = None) -> dict[str, Any]:
        """List campaigns, most recently updated first.

        Args:
            q: Optional search text (at least two characters) matched
                case-insensitively against title and premise

        Returns:
            {"items": [{id, title, system, created_at, updated_at}, ...]}
        """
        query = select(Campaign)
        if q is not None:
            if len(q.strip()) < 2:
                raise InvalidPayload("Search text must be at least two characters")
            pattern = f"%{q.strip()}%"
            query = query.where(or_(Campaign.title.ilike(pattern), Campaign.premise.ilike(pattern)))
        query = query.order_by(Campaign.updated_at.desc(), Campaign.id.desc()).limit(LIST_LIMIT)

        with self.store.transaction() as session:
            items = [
                {
                    "id": campaign.id,
                    "title": campaign.title,
                    "system": campaign.system,
                    "created_at": campaign.created_at.isoformat() if campaign.created_at else None,
                    "updated_at": campaign.updated_at.isoformat() if campaign.updated_at else None,
                }
                for campaign in session.scalars(query)
            ]
        return {"items": items}
