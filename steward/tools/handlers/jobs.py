"""Identity and job selection tools."""

import re
from typing import Any

from steward.conversation.models import MenuKind
from steward.inspection.enums import WorkOrderStatus
from steward.inspection.errors import GuardViolation, ValidationFailure
from steward.inspection.models import Inspector, WorkOrder
from steward.observability.logging import get_logger
from steward.tools.context import ToolContext, jobs_cache_key, text_arg
from steward.tools.formatting import clock_time, numbered
from steward.tools.handlers.navigation import location_menu

logger = get_logger(__name__)

IDENTIFY_PROMPT = (
    "I need to confirm who you are first. "
    "Please share your full name and phone number (with country code)."
)

_PHONE_NOISE = re.compile(r"[\s\-()]")


def phone_variants(raw: str, country_code: str) -> list[str]:
    """Spellings a stored phone number might use for what the inspector typed."""
    compact = _PHONE_NOISE.sub("", raw)
    if not compact:
        return []
    variants = [compact]
    if compact.startswith("+"):
        variants.append(compact[1:])
    else:
        variants.append("+" + compact)
        digits = compact.lstrip("0")
        if len(compact) == 8 and compact.isdigit():
            variants.append(country_code + compact)
        if digits != compact:
            variants.extend([digits, country_code + digits])
    return list(dict.fromkeys(variants))


def _remember(ctx: ToolContext, inspector: Inspector) -> None:
    ctx.session.inspector_id = inspector.id
    ctx.session.inspector_name = inspector.name
    ctx.session.inspector_phone = inspector.phone


async def _resolve_inspector(ctx: ToolContext, args: dict[str, Any]) -> Inspector | None:
    if ctx.session.inspector_id:
        known = await ctx.repository.get_inspector(ctx.session.inspector_id)
        if known is not None:
            return known

    candidate_id = text_arg(args, "inspectorId")
    if candidate_id:
        by_id = await ctx.repository.get_inspector(candidate_id)
        if by_id is not None and by_id.active:
            return by_id

    phone = text_arg(args, "inspectorPhone")
    if phone:
        matches = await ctx.repository.find_inspectors(
            phones=phone_variants(phone, ctx.workflow.default_country_code)
        )
        if matches:
            return matches[0]
    return None


def _job_row(number: int, job: WorkOrder) -> dict[str, Any]:
    return {
        "id": job.id,
        "jobNumber": number,
        "selectionNumber": f"[{number}]",
        "property": job.property_address,
        "customer": job.customer_name,
        "time": clock_time(job.scheduled_start),
        "status": job.status.value,
    }


async def get_today_jobs(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    inspector = await _resolve_inspector(ctx, args)
    if inspector is None:
        raise GuardViolation(
            IDENTIFY_PROMPT, identifyRequired=True, nextAction="collectInspectorInfo"
        )

    if args.get("reset"):
        ctx.machine.decline_job(ctx.session)
    _remember(ctx, inspector)

    day = ctx.now.date()
    key = f"{jobs_cache_key(inspector.id)}:{day.isoformat()}"
    jobs = await ctx.cache.get(key)
    if jobs is None:
        orders = await ctx.repository.list_work_orders(inspector.id, day)
        jobs = [
            _job_row(number, job)
            for number, job in enumerate(
                (o for o in orders if o.status is not WorkOrderStatus.CANCELLED), start=1
            )
        ]
        await ctx.cache.set(key, jobs)

    ctx.machine.show_menu(ctx.session, MenuKind.JOBS, [job["id"] for job in jobs])
    logger.info("today_jobs_listed", inspector_id=inspector.id, count=len(jobs))
    return {
        "success": True,
        "inspectorName": inspector.name,
        "jobs": jobs,
        "count": len(jobs),
        "jobsFormatted": numbered(
            f"{job['time']} {job['property']} ({job['customer']})" for job in jobs
        ),
        "nextPrompt": (
            "Reply with the number of the job you want to start."
            if jobs
            else "You have no inspections scheduled for today."
        ),
    }


async def collect_inspector_info(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    name = text_arg(args, "name")
    phone = text_arg(args, "phone")
    if not name or not phone:
        raise ValidationFailure(
            "Please provide both your full name and your phone number (with country code)."
        )

    compact = _PHONE_NOISE.sub("", phone)
    normalized = compact if compact.startswith("+") else ctx.workflow.default_country_code + compact
    variants = list(
        dict.fromkeys(
            [normalized, normalized[1:], *phone_variants(phone, ctx.workflow.default_country_code)]
        )
    )
    matches = await ctx.repository.find_inspectors(name=name, phones=variants)
    if not matches:
        raise ValidationFailure(
            "We couldn't find an inspector matching both the provided name and phone "
            "number. Please check both and try again, or contact admin for registration."
        )

    inspector = matches[0]
    _remember(ctx, inspector)
    ctx.session.inspector_phone = inspector.phone or normalized
    logger.info("inspector_identified", inspector_id=inspector.id)
    return {
        "success": True,
        "inspector": {
            "id": inspector.id,
            "name": inspector.name,
            "phone": ctx.session.inspector_phone,
        },
        "nextAction": "getTodayJobs",
    }


async def confirm_job_selection(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    job_id = text_arg(args, "jobId")
    if not job_id:
        raise ValidationFailure("Please pick a job from today's list.")
    job = await ctx.repository.get_work_order(job_id)
    if job is None:
        raise ValidationFailure("Job not found. Please pick a job from today's list.")
    if job.status in (WorkOrderStatus.CANCELLED, WorkOrderStatus.COMPLETED):
        raise ValidationFailure(
            f"This job is already {job.status.value.lower()}. Please pick another one."
        )

    ctx.machine.confirm_job(ctx.session, job.id)
    return {
        "success": True,
        "confirmationRequired": True,
        "prompt": "Please confirm the destination details before starting the inspection.",
        "options": [
            {"value": "confirm_yes", "label": "[1] Yes"},
            {"value": "confirm_no", "label": "[2] No"},
        ],
        "jobDetails": {
            "id": job.id,
            "property": job.property_address,
            "customer": job.customer_name,
            "time": clock_time(job.scheduled_start),
            "status": job.status.value,
        },
    }


async def start_job(ctx: ToolContext, args: dict[str, Any]) -> dict[str, Any]:
    """Start the job awaiting confirmation; the session's job wins over `jobId`."""
    work_order_id = ctx.machine.require_job_confirming(ctx.session)
    job = await ctx.repository.get_work_order(work_order_id)
    if job is None:
        raise ValidationFailure("Invalid or unknown job id. Please pick a job again.")

    if job.status is not WorkOrderStatus.STARTED:
        job.status = WorkOrderStatus.STARTED
        job.started_at = job.started_at or ctx.now
        await ctx.repository.update_work_order(job)
    ctx.machine.start_job(ctx.session)
    if ctx.session.inspector_id is None:
        ctx.session.inspector_id = job.inspector_id
    await ctx.invalidate(jobs_cache_key(job.inspector_id))
    logger.info("job_started", work_order_id=job.id)

    menu = await location_menu(ctx, job.id)
    return {"success": True, "jobId": job.id, **menu}
