"""
Automation engine: matches standardized events to stored rules and runs their actions.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from fusionbridge.core.errors import RuleConfigError
from fusionbridge.pipeline.actions import ActionContext, ActionDispatcher, ActionResult
from fusionbridge.pipeline.conditions import evaluate_conditions, matches_any_entity_type
from fusionbridge.pipeline.facts import build_facts, effective_device_info
from fusionbridge.pipeline.schedule import is_schedule_due, schedule_facts
from fusionbridge.pipeline.temporal import evaluate_temporal_conditions
from fusionbridge.pipeline.time_filter import evaluate_time_of_day
from fusionbridge.schemas.automation import (
    SCHEDULED_ACTION_TYPES,
    AutomationConfig,
    AutomationRule,
    EventTrigger,
    ScheduledTrigger,
)
from fusionbridge.schemas.event import StandardizedEvent
from fusionbridge.services.audit_store import AutomationAuditStore, determine_execution_status
from fusionbridge.services.context import (
    AreaRecord,
    ConnectorRecord,
    ContextRepository,
    DeviceRecord,
    LocationRecord,
)
from fusionbridge.services.events_store import EventStore


@dataclass
class RuleExecution:
    """Outcome of one rule for one event."""

    rule_id: str
    rule_name: str = ""
    triggered: bool = False
    skipped_reason: Optional[str] = None
    action_results: List[ActionResult] = field(default_factory=list)

    @property
    def failed_actions(self) -> int:
        return sum(1 for r in self.action_results if not r.success)


@dataclass
class EngineResult:
    """Counters for one `process_event` pass."""

    event_id: str = ""
    rules_evaluated: int = 0
    rules_triggered: int = 0
    actions_executed: int = 0
    actions_failed: int = 0
    errors: List[str] = field(default_factory=list)
    executions: List[RuleExecution] = field(default_factory=list)


@dataclass
class EvaluationContext:
    """Device, area and location around the triggering event, fetched once per pass."""

    device: Optional[DeviceRecord] = None
    connector: Optional[ConnectorRecord] = None
    area: Optional[AreaRecord] = None
    location: Optional[LocationRecord] = None

    @property
    def organization_id(self) -> Optional[str]:
        return self.connector.organization_id if self.connector else None


class AutomationEngine:
    """
    Core engine for automation rule processing.

    Responsibilities:
    - Filter rules by organization, location scope, source entity type and event type
    - Evaluate time-of-day, structured conditions and temporal conditions
    - Dispatch each matching rule's actions in declared order
    - Record every triggered rule in the audit store

    The engine keeps no per-pass state on the instance, so `process_event`
    may run concurrently for different events.
    """

    def __init__(
        self,
        repo: ContextRepository,
        event_store: EventStore,
        dispatcher: ActionDispatcher,
        audit_store: Optional[AutomationAuditStore] = None,
    ) -> None:
        self.repo = repo
        self.event_store = event_store
        self.dispatcher = dispatcher
        self.audit_store = audit_store

    # =========================================================================
    # Context
    # =========================================================================

    def load_context(self, event: StandardizedEvent) -> EvaluationContext:
        connector = self.repo.get_connector(event.connector_id)
        device = self.repo.find_device(event.connector_id, event.device_id)
        area = self.repo.get_area(device.area_id) if device and device.area_id else None

        location_id = None
        if device and device.location_id:
            location_id = device.location_id
        elif area:
            location_id = area.location_id
        location = self.repo.get_location(location_id) if location_id else None

        return EvaluationContext(device=device, connector=connector, area=area, location=location)

    # =========================================================================
    # Event processing
    # =========================================================================

    async def process_event(
        self,
        event: StandardizedEvent,
        rules: Sequence[AutomationRule],
    ) -> EngineResult:
        """Evaluate every rule against `event` and run the actions of the ones that match."""
        result = EngineResult(event_id=event.event_id)

        try:
            ctx = self.load_context(event)
        except Exception as e:
            logger.exception(f"[Automation] Context lookup failed for event {event.event_id}: {e}")
            result.errors.append(f"context: {e}")
            return result

        facts = build_facts(event, ctx.device, ctx.connector, ctx.area, ctx.location)

        executions = await asyncio.gather(
            *(self._run_rule(rule, event, ctx, facts) for rule in rules),
            return_exceptions=True,
        )

        for rule, execution in zip(rules, executions):
            if isinstance(execution, BaseException):
                logger.error(f"[Automation] Rule {rule.id} crashed on event {event.event_id}: {execution}")
                result.errors.append(f"{rule.id}: {execution}")
                continue
            if execution.skipped_reason not in ("disabled", "organization"):
                result.rules_evaluated += 1
            if execution.triggered:
                result.rules_triggered += 1
                result.actions_executed += len(execution.action_results)
                result.actions_failed += execution.failed_actions
            if execution.skipped_reason and execution.skipped_reason.startswith("error"):
                result.errors.append(f"{rule.id}: {execution.skipped_reason}")
            result.executions.append(execution)

        if result.rules_triggered:
            logger.info(
                f"[Automation] event={event.event_id} evaluated={result.rules_evaluated} "
                f"triggered={result.rules_triggered} actions={result.actions_executed} "
                f"failed={result.actions_failed}"
            )
        return result

    def rule_matches(
        self,
        rule: AutomationRule,
        event: StandardizedEvent,
        ctx: EvaluationContext,
        facts: Dict[str, Any],
    ) -> Tuple[Optional[AutomationConfig], Optional[str]]:
        """Returns `(config, None)` when the rule should fire, otherwise `(None, reason)`."""
        if not rule.enabled:
            return None, "disabled"

        if rule.organization_id and rule.organization_id != ctx.organization_id:
            return None, "organization"

        if rule.location_scope_id:
            location_id = ctx.location.id if ctx.location else None
            if location_id != rule.location_scope_id:
                return None, "location_scope"

        try:
            config = rule.parse_config()
        except RuleConfigError as e:
            logger.warning(f"[Automation] Skipping rule {rule.id}: {e}")
            return None, "error: invalid configuration"

        trigger = config.trigger
        if not isinstance(trigger, EventTrigger):
            return None, "not_event_triggered"

        device_info = effective_device_info(event, ctx.device)
        if not matches_any_entity_type(trigger.source_entity_types, device_info):
            return None, "source_entity_type"
        if trigger.event_types and event.type not in trigger.event_types:
            return None, "event_type"

        if not evaluate_time_of_day(trigger.time_of_day, event.timestamp, ctx.location):
            return None, "time_of_day"

        try:
            if not evaluate_conditions(trigger.conditions, facts):
                return None, "conditions"
            if config.temporal_conditions and not evaluate_temporal_conditions(
                config.temporal_conditions,
                event,
                self.event_store,
                self.repo,
                area_id=ctx.area.id if ctx.area else None,
                location_id=ctx.location.id if ctx.location else None,
            ):
                return None, "temporal_conditions"
        except Exception as e:
            logger.warning(f"[Automation] Condition evaluation failed for rule {rule.id}: {e}")
            return None, f"error: {e}"

        return config, None

    async def _run_rule(
        self,
        rule: AutomationRule,
        event: StandardizedEvent,
        ctx: EvaluationContext,
        facts: Dict[str, Any],
    ) -> RuleExecution:
        execution = RuleExecution(rule_id=rule.id, rule_name=rule.name)

        config, reason = self.rule_matches(rule, event, ctx, facts)
        if config is None:
            execution.skipped_reason = reason
            return execution

        action_ctx = ActionContext(rule=rule, event=event, facts=facts, device=ctx.device)
        await self._run_actions(execution, config, action_ctx)
        self._audit(execution, {
            "trigger": "event",
            "event_id": event.event_id,
            "event_type": event.type.value,
            "connector_id": event.connector_id,
            "device_id": event.device_id,
        })
        return execution

    async def _run_actions(
        self,
        execution: RuleExecution,
        config: AutomationConfig,
        action_ctx: ActionContext,
    ) -> None:
        execution.triggered = True
        # declared order; a failed action does not stop the next one
        for index, action in enumerate(config.actions):
            execution.action_results.append(await self.dispatcher.dispatch(index, action, action_ctx))

    # =========================================================================
    # Scheduled automations
    # =========================================================================

    def schedule_time_zone(self, rule: AutomationRule, trigger: ScheduledTrigger) -> Tuple[str, Optional[LocationRecord]]:
        """The scoped location's zone wins over the trigger's own."""
        if not rule.location_scope_id:
            return trigger.timezone, None
        location = self.repo.get_location(rule.location_scope_id)
        if location is None:
            logger.warning(
                f"[Automation] Rule {rule.id} scoped to unknown location {rule.location_scope_id}, "
                f"using {trigger.timezone}"
            )
            return trigger.timezone, None
        return location.time_zone or trigger.timezone, location

    async def process_scheduled(self, now: datetime, rules: Sequence[AutomationRule]) -> EngineResult:
        """
        Run the scheduled rules due in the minute of `now` (timezone-aware).

        Only arm/disarm actions run. Scheduled rules have no triggering
        event, so temporal conditions and device facts do not apply.
        """
        result = EngineResult(event_id=f"schedule:{now.isoformat()}")

        due = []
        for rule in rules:
            if not rule.enabled:
                continue
            try:
                config = rule.parse_config()
            except RuleConfigError as e:
                logger.warning(f"[Automation] Skipping rule {rule.id}: {e}")
                result.errors.append(f"{rule.id}: error: invalid configuration")
                continue
            trigger = config.trigger
            if not isinstance(trigger, ScheduledTrigger):
                continue

            result.rules_evaluated += 1
            time_zone, location = self.schedule_time_zone(rule, trigger)
            try:
                if not is_schedule_due(trigger.cron_expression, now, time_zone):
                    continue
            except (ValueError, KeyError) as e:
                logger.error(f"[Automation] Rule {rule.id}: cannot evaluate '{trigger.cron_expression}' in {time_zone}: {e}")
                result.errors.append(f"{rule.id}: error: {e}")
                continue
            due.append((rule, config, schedule_facts(trigger.cron_expression, time_zone, now, location, rule.location_scope_id)))

        executions = await asyncio.gather(
            *(self._run_scheduled_rule(rule, config, facts) for rule, config, facts in due),
            return_exceptions=True,
        )
        for (rule, _, _), execution in zip(due, executions):
            if isinstance(execution, BaseException):
                logger.error(f"[Automation] Scheduled rule {rule.id} crashed: {execution}")
                result.errors.append(f"{rule.id}: {execution}")
                continue
            result.rules_triggered += 1
            result.actions_executed += len(execution.action_results)
            result.actions_failed += execution.failed_actions
            result.executions.append(execution)

        if result.rules_triggered:
            logger.info(
                f"[Automation] schedule tick {now.isoformat()} triggered={result.rules_triggered} "
                f"actions={result.actions_executed} failed={result.actions_failed}"
            )
        return result

    async def _run_scheduled_rule(
        self,
        rule: AutomationRule,
        config: AutomationConfig,
        facts: Dict[str, Any],
    ) -> RuleExecution:
        execution = RuleExecution(rule_id=rule.id, rule_name=rule.name)
        logger.info(f"[Automation] Scheduled rule {rule.id} ({rule.name}) is due")

        allowed = config.model_copy(
            update={"actions": [a for a in config.actions if a.type in SCHEDULED_ACTION_TYPES]}
        )
        await self._run_actions(execution, allowed, ActionContext(rule=rule, event=None, facts=facts))
        self._audit(execution, {
            "trigger": "scheduled",
            "event_id": None,
            "event_type": None,
            "scheduled_at": facts["schedule"]["triggered_at_utc"],
        })
        return execution

    def _audit(self, execution: RuleExecution, source: Dict[str, Any]) -> None:
        if self.audit_store is None:
            return
        ok = len(execution.action_results) - execution.failed_actions
        self.audit_store.add_execution({
            "rule_id": execution.rule_id,
            "rule_name": execution.rule_name,
            **source,
            "action_results": [r.as_dict() for r in execution.action_results],
            "status": determine_execution_status(ok, execution.failed_actions).value,
        })
