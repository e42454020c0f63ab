# edulink/services/suggestion_store.py
"""Persistence for relationship suggestions."""
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import ValidationError, UnknownSuggestionTypeError
from ..models.base import utcnow
from ..models.tenant_specific.automation import AutomationSuggestion, SuggestionType
from .base_service import BaseService

logger = logging.getLogger(__name__)


def parse_suggestion_type(value) -> SuggestionType:
    if isinstance(value, SuggestionType):
        return value
    try:
        return SuggestionType(value)
    except ValueError:
        raise UnknownSuggestionTypeError(value)


def relationship_payload(
    relationship_type,
    source_entity: Optional[str],
    target_entity: Optional[str],
    confidence: float,
    reasoning: str,
    data: Optional[Dict[str, Any]] = None,
    strategy: Optional[str] = None,
) -> Dict[str, Any]:
    """suggestion_data layout read back by the applier."""
    payload = {
        "type": getattr(relationship_type, "value", relationship_type),
        "source_entity": source_entity,
        "target_entity": target_entity,
        "confidence": round(float(confidence), 4),
        "reasoning": reasoning,
        "data": data or {},
    }
    if strategy:
        payload["strategy"] = strategy
    return payload


class SuggestionStore(BaseService[AutomationSuggestion]):
    """Append-only store: repeated inference runs add new rows, nothing is deduplicated."""

    resource_name = "Suggestion"

    def __init__(self, db: AsyncSession, tenant_id: str):
        super().__init__(AutomationSuggestion, db, tenant_id)

    def build(
        self,
        entity_type: str,
        entity_id: str,
        suggestion_type: SuggestionType,
        suggestion_data: Dict[str, Any],
        confidence_score: float,
        target_entity_type: Optional[str] = None,
    ) -> AutomationSuggestion:
        """Stage a new unaccepted suggestion in the session without committing."""
        suggestion = AutomationSuggestion(
            tenant_id=self.tenant_id,
            entity_type=entity_type,
            entity_id=entity_id,
            target_entity_type=target_entity_type,
            suggestion_type=parse_suggestion_type(suggestion_type).value,
            suggestion_data=suggestion_data,
            confidence_score=round(float(confidence_score), 4),
            accepted=False,
            applied_at=None,
        )
        self.db.add(suggestion)
        return suggestion

    async def save(self, suggestion: AutomationSuggestion) -> AutomationSuggestion:
        if suggestion.tenant_id is None:
            suggestion.tenant_id = self.tenant_id
        self.db.add(suggestion)
        await self.db.commit()
        return suggestion

    async def save_all(self, suggestions: List[AutomationSuggestion]) -> List[AutomationSuggestion]:
        self.db.add_all(suggestions)
        await self.db.commit()
        logger.info(f"Stored {len(suggestions)} suggestions for tenant {self.tenant_id}")
        return suggestions

    async def list_for(
        self,
        entity_type: str,
        entity_id: str,
        suggestion_type=SuggestionType.RELATIONSHIP_INFERENCE,
        limit: Optional[int] = None,
    ) -> List[AutomationSuggestion]:
        """Unaccepted suggestions for one entity, most confident first."""
        stmt = self._base_query().where(
            self.model.entity_type == entity_type,
            self.model.entity_id == entity_id,
            self.model.suggestion_type == parse_suggestion_type(suggestion_type).value,
            self.model.accepted == False
        ).order_by(self.model.confidence_score.desc(), self.model.created_at.desc())
        if limit:
            stmt = stmt.limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_all(
        self,
        entity_type: Optional[str] = None,
        min_confidence: Optional[float] = None,
        limit: int = 100,
        suggestion_type=SuggestionType.RELATIONSHIP_INFERENCE,
    ) -> List[AutomationSuggestion]:
        """Unaccepted suggestions above a confidence floor."""
        if min_confidence is None:
            min_confidence = settings.default_min_confidence

        stmt = self._base_query().where(
            self.model.suggestion_type == parse_suggestion_type(suggestion_type).value,
            self.model.accepted == False,
            self.model.confidence_score >= min_confidence
        )
        if entity_type:
            stmt = stmt.where(self.model.entity_type == entity_type)
        stmt = stmt.order_by(self.model.confidence_score.desc()).limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_generic(
        self,
        entity_type: Optional[str] = None,
        suggestion_type: Optional[str] = None,
        accepted: Optional[bool] = None,
        limit: int = 100,
    ) -> List[AutomationSuggestion]:
        """Any suggestion, accepted or not, for the generic review surface."""
        stmt = self._base_query()
        if entity_type:
            stmt = stmt.where(self.model.entity_type == entity_type)
        if suggestion_type:
            stmt = stmt.where(self.model.suggestion_type == parse_suggestion_type(suggestion_type).value)
        if accepted is not None:
            stmt = stmt.where(self.model.accepted == accepted)
        stmt = stmt.order_by(self.model.confidence_score.desc()).limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def set_accepted(
        self,
        suggestion_id: str,
        accepted: bool,
        applied_data: Optional[Dict[str, Any]] = None,
    ) -> AutomationSuggestion:
        """Flip the accepted flag only; the related entities are left untouched."""
        suggestion = await self.get_or_404(suggestion_id)

        if suggestion.accepted and not accepted:
            raise ValidationError("Accepted suggestions cannot be reverted", field="accepted")

        if accepted and not suggestion.accepted:
            suggestion.accepted = True
            suggestion.applied_at = utcnow()
        if applied_data:
            suggestion.suggestion_data = applied_data

        await self.db.commit()
        return suggestion
