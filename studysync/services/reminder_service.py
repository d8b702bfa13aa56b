"""
Deadline reminder engine, run by the external cron trigger.

A rule "N units before the deadline" fires once, on the first run where
``deadline - N units <= now <= deadline``. Each firing is recorded on the
instance under the rule id, and a recorded rule never fires again. A
missed window is not caught up after the deadline passes.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from ..models.base import utc_now
from ..models.enums import InstanceStatus, ReminderUnit
from ..models.instance import SentReminder, StudyPlanInstance
from ..models.study_plan import StudyPlan
from ..models.user import ReminderRule, User
from ..utils import as_utc, batch_get
from .email_service import EmailService

logger = logging.getLogger(__name__)

UNIT_DELTAS = {
    ReminderUnit.MINUTES: timedelta(minutes=1),
    ReminderUnit.HOURS: timedelta(hours=1),
    ReminderUnit.DAYS: timedelta(days=1),
    ReminderUnit.WEEKS: timedelta(weeks=1),
}


def target_date(deadline: datetime, rule: ReminderRule) -> datetime:
    return as_utc(deadline) - rule.value * UNIT_DELTAS[rule.unit]


def describe(rule: ReminderRule) -> str:
    unit = rule.unit.value
    if rule.value == 1:
        unit = unit[:-1]
    return f"{rule.value} {unit}"


def should_fire(rule: ReminderRule, deadline: Optional[datetime], now: datetime, sent: Iterable[str]) -> bool:
    if deadline is None or rule.rule_id in set(sent):
        return False
    now = as_utc(now)
    return target_date(deadline, rule) <= now <= as_utc(deadline)


def effective_rules(instance: StudyPlanInstance, user: User) -> List[ReminderRule]:
    """Instance rules when it has any, otherwise the owner's defaults"""
    if instance.custom_reminders:
        return list(instance.custom_reminders)
    return list(user.notification_settings.custom_reminders)


def due_rules(instance: StudyPlanInstance, user: User, now: datetime) -> List[ReminderRule]:
    sent = [s.reminder_id for s in instance.sent_reminders]
    return [
        rule
        for rule in effective_rules(instance, user)
        if should_fire(rule, instance.deadline, now, sent)
    ]


class ReminderService:
    """Service class for the reminder sweep"""

    @staticmethod
    async def record_sent(instance: StudyPlanInstance, rule_id: str, sent_at: datetime) -> None:
        """Append a sent marker unless another run already recorded this rule"""
        await StudyPlanInstance.find_one(
            {"_id": instance.id, "sent_reminders.reminder_id": {"$ne": rule_id}}
        ).update({"$push": {"sent_reminders": {"reminder_id": rule_id, "sent_at": sent_at}}})
        instance.sent_reminders.append(SentReminder(reminder_id=rule_id, sent_at=sent_at))

    @staticmethod
    async def run_reminders(now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Send every reminder that is due and record it

        Args:
            now: Evaluation time, defaults to the current UTC time

        Returns:
            Counts of emails sent, failed sends and instances checked
        """
        now = as_utc(now) if now is not None else utc_now()

        instances = await StudyPlanInstance.find(
            {
                "status": InstanceStatus.ACTIVE.value,
                "reminder_enabled": True,
                "end_date": {"$gte": now},
            }
        ).to_list()

        users = await batch_get(User, list({i.user_id for i in instances}))
        plans = await batch_get(StudyPlan, list({i.study_plan_id for i in instances}))

        sent_count = 0
        failed_count = 0

        for instance in instances:
            user = users.get(instance.user_id)
            if user is None or not user.email:
                continue
            if not user.notification_settings.email_reminders:
                continue

            plan = plans.get(instance.study_plan_id)
            title = instance.custom_title or (plan.title if plan else "Your study plan")

            for rule in due_rules(instance, user, now):
                try:
                    delivered = await EmailService.send_custom_reminder(
                        user.email,
                        title,
                        as_utc(instance.deadline),
                        str(instance.id),
                        describe(rule),
                    )
                except Exception:
                    # One broken send must not stop the sweep
                    logger.exception(f"Reminder {rule.rule_id} for instance {instance.id} raised")
                    delivered = False

                if not delivered:
                    failed_count += 1
                    logger.warning(f"Reminder {rule.rule_id} for instance {instance.id} not delivered")
                    continue

                await ReminderService.record_sent(instance, rule.rule_id, now)
                sent_count += 1
                logger.info(f"Reminder {rule.rule_id} sent for instance {instance.id}")

        logger.info(
            f"Reminder run finished: {sent_count} sent, {failed_count} failed, {len(instances)} checked"
        )
        return {
            "success": True,
            "emails_sent": sent_count,
            "failed": failed_count,
            "checked": len(instances),
        }
