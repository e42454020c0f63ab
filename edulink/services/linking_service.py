# edulink/services/linking_service.py
"""Intelligent linking: run the applicable matching strategies for a source entity."""
from typing import Any, Dict, List, Optional, Tuple
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.tenant_specific.automation import EntityType, RelationshipType, SuggestionType
from ..schemas.automation_schemas import LinkingAnalysis, MatchResult
from .entity_accessor import EntityAccessor, parse_entity_type
from .matching import applicable_strategies, confidence_factors, overall_confidence, run_strategies
from .suggestion_store import SuggestionStore, relationship_payload

logger = logging.getLogger(__name__)

# (source, target) -> relationship type and whether source/target swap roles in it
LINK_RELATIONSHIPS: Dict[Tuple[EntityType, EntityType], Tuple[RelationshipType, bool]] = {
    (EntityType.PARENT, EntityType.STUDENT): (RelationshipType.PARENT_CHILD, False),
    (EntityType.STUDENT, EntityType.PARENT): (RelationshipType.PARENT_CHILD, True),
    (EntityType.TEACHER, EntityType.CLASS): (RelationshipType.TEACHER_CLASS, False),
    (EntityType.CLASS, EntityType.TEACHER): (RelationshipType.CLASS_TEACHER, False),
    (EntityType.STUDENT, EntityType.CLASS): (RelationshipType.STUDENT_CLASS, False),
    (EntityType.CLASS, EntityType.STUDENT): (RelationshipType.STUDENT_CLASS, True),
}


class LinkingService:
    def __init__(self, db: AsyncSession, tenant_id: str):
        self.db = db
        self.tenant_id = tenant_id
        self.entities = EntityAccessor(db, tenant_id)
        self.store = SuggestionStore(db, tenant_id)

    async def analyze(
        self,
        source_type,
        source_id: str,
        target_type,
        context: Optional[Dict[str, Any]] = None,
    ) -> LinkingAnalysis:
        """Score candidate targets for one source entity.

        Every strategy from the selection table runs; suggestions are
        concatenated, so a target appears once per strategy that proposed it.
        Raises NotFoundError when the source does not exist.
        """
        source_type = parse_entity_type(source_type)
        target_type = parse_entity_type(target_type)
        source = await self.entities.get_entity(source_type, source_id)

        analysis = LinkingAnalysis(
            source_type=source_type.value,
            source_id=source.id,
            target_type=target_type.value,
        )

        strategies = applicable_strategies(source_type, target_type)
        if not strategies:
            analysis.reasoning.append(f"No linking strategy applies to {source_type.value} -> {target_type.value}")
            analysis.confidence_score = overall_confidence(analysis.confidence_factors)
            return analysis

        pool = await self.entities.build_pool(source_type, target_type)
        results = run_strategies(source, pool, strategies)

        for strategy, matches in results.items():
            analysis.strategies.append(strategy.value)
            analysis.suggestions.extend(matches)
            analysis.reasoning.append(f"{strategy.value}: {len(matches)} candidate(s)")

        analysis.confidence_factors = confidence_factors(results)
        analysis.confidence_score = overall_confidence(analysis.confidence_factors)

        logger.info(
            f"Linking {source_type.value} {source.id} -> {target_type.value}: "
            f"{len(analysis.suggestions)} suggestions, score {analysis.confidence_score}"
        )
        return analysis

    def _payload(self, analysis: LinkingAnalysis, match: MatchResult, context: Dict[str, Any]) -> Dict[str, Any]:
        pair = (EntityType(analysis.source_type), EntityType(analysis.target_type))
        relationship_type, swapped = LINK_RELATIONSHIPS[pair]
        source_entity, target_entity = analysis.source_id, match.target_id
        if swapped:
            source_entity, target_entity = target_entity, source_entity

        data = dict(match.data)
        data["overall_confidence"] = analysis.confidence_score
        if context:
            data["context"] = context

        return relationship_payload(
            relationship_type,
            source_entity,
            target_entity,
            match.confidence,
            match.reasoning,
            data=data,
            strategy=match.strategy,
        )

    async def analyze_and_store(
        self,
        source_type,
        source_id: str,
        target_type,
        context: Optional[Dict[str, Any]] = None,
    ) -> LinkingAnalysis:
        """Analyze, then persist one intelligent_linking suggestion per proposed target."""
        context = context or {}
        analysis = await self.analyze(source_type, source_id, target_type, context)
        if not analysis.suggestions:
            return analysis

        stored = [
            self.store.build(
                entity_type=analysis.source_type,
                entity_id=analysis.source_id,
                target_entity_type=analysis.target_type,
                suggestion_type=SuggestionType.INTELLIGENT_LINKING,
                suggestion_data=self._payload(analysis, match, context),
                confidence_score=match.confidence,
            )
            for match in analysis.suggestions
        ]
        await self.store.save_all(stored)

        analysis.suggestion_ids = [suggestion.id for suggestion in stored]
        return analysis

    async def get_linking_suggestions(self, entity_type, entity_id: str, limit: int = 10):
        entity_type = parse_entity_type(entity_type)
        return await self.store.list_for(
            entity_type.value, entity_id, SuggestionType.INTELLIGENT_LINKING, limit=limit
        )

    async def get_relationship_graph(self, entity_ids: List[str]) -> Dict[str, Any]:
        """Existing links between the given entities and their neighbours."""
        entity_ids = [entity_id for entity_id in entity_ids if entity_id]
        entities: List[Dict[str, Any]] = []
        relationships: List[Dict[str, Any]] = []

        def edge(source: str, target: str, edge_type: str):
            relationships.append({"from": source, "to": target, "type": edge_type, "strength": 1.0})

        for student in await self.entities.get_entities(EntityType.STUDENT, entity_ids):
            entities.append({"id": student.id, "type": EntityType.STUDENT.value, "name": student.name})
            if student.class_id:
                edge(student.id, student.class_id, "student_class")
            if student.parent_id:
                edge(student.id, student.parent_id, "student_parent")

        for parent in await self.entities.get_entities(EntityType.PARENT, entity_ids):
            entities.append({"id": parent.id, "type": EntityType.PARENT.value, "name": parent.name})
            for child_id in parent.children_ids or []:
                edge(parent.id, child_id, "parent_child")

        for teacher in await self.entities.get_entities(EntityType.TEACHER, entity_ids):
            entities.append({"id": teacher.id, "type": EntityType.TEACHER.value, "name": teacher.name})
            for class_id in teacher.class_ids or []:
                edge(teacher.id, class_id, "teacher_class")

        for class_obj in await self.entities.get_entities(EntityType.CLASS, entity_ids):
            entities.append({"id": class_obj.id, "type": EntityType.CLASS.value, "name": class_obj.name})

        return {
            "entities": entities,
            "relationships": relationships,
            "graph_density": len(relationships) / max(len(entities), 1),
        }
