"""Seed script for the default chat template catalog.

Idempotent: a template is skipped when one with the same category and text exists.
Run from backend/: python scripts/seed_chat_templates.py
"""
import asyncio

from marketplace.domain.template.models import ChatTemplate, TemplateCategory
from marketplace.domain.template.rendering import extract_variables
from marketplace.infra.db.base import AsyncSessionLocal, engine
from marketplace.infra.db.repositories.template_repo import TemplateRepositoryImpl


# (category, template_text, description); variables are derived from the text
TEMPLATES = [
    # --- Booking coordination ---
    (TemplateCategory.BOOKING_COORDINATION, "What time works best for you?", "Ask about preferred time"),
    (
        TemplateCategory.BOOKING_COORDINATION,
        "Can we confirm the appointment for {{time}} on {{date}}?",
        "Confirm appointment time",
    ),
    (TemplateCategory.BOOKING_COORDINATION, "I need to reschedule our appointment", "Request to reschedule"),
    (
        TemplateCategory.BOOKING_COORDINATION,
        "Please confirm the location for our meeting",
        "Confirm meeting location",
    ),
    (TemplateCategory.BOOKING_COORDINATION, "I'm running {{minutes}} minutes late", "Notify about being late"),
    (
        TemplateCategory.BOOKING_COORDINATION,
        "Are you available for {{duration}} hours starting at {{time}}?",
        "Check availability for specific duration",
    ),
    (
        TemplateCategory.BOOKING_COORDINATION,
        "Appointment confirmed for {{date}} at {{time}}",
        "Confirm appointment details",
    ),
    # --- Service discussion ---
    (TemplateCategory.SERVICE_DISCUSSION, "What services are you interested in?", "Ask about service preferences"),
    (TemplateCategory.SERVICE_DISCUSSION, "My rates are {{rate}} tokens per hour", "State hourly rate"),
    (TemplateCategory.SERVICE_DISCUSSION, "The session duration will be {{hours}} hours", "Specify session duration"),
    (TemplateCategory.SERVICE_DISCUSSION, "Do you have any specific preferences?", "Ask about preferences"),
    (
        TemplateCategory.SERVICE_DISCUSSION,
        "Please review my service menu in my profile",
        "Direct to service menu",
    ),
    (TemplateCategory.SERVICE_DISCUSSION, "I offer {{serviceType}} services", "Specify service type"),
    (TemplateCategory.SERVICE_DISCUSSION, "The total cost will be {{totalTokens}} tokens", "State total cost"),
    # --- Logistics ---
    (TemplateCategory.LOGISTICS, "I'll be arriving at the specified time", "Confirm arrival"),
    (TemplateCategory.LOGISTICS, "Please share the exact address", "Request address"),
    (TemplateCategory.LOGISTICS, "I'm here, please let me know when ready", "Notify arrival"),
    (TemplateCategory.LOGISTICS, "Thank you for a wonderful time", "Express gratitude"),
    (TemplateCategory.LOGISTICS, "Session is complete", "Confirm session completion"),
    (TemplateCategory.LOGISTICS, "I'm {{distance}} minutes away", "Notify estimated arrival"),
    (TemplateCategory.LOGISTICS, "Heading to the location now", "Notify departure"),
    # --- Support ---
    (TemplateCategory.SUPPORT, "I have a question about the booking", "General booking question"),
    (TemplateCategory.SUPPORT, "There seems to be an issue", "Report issue"),
    (TemplateCategory.SUPPORT, "I need to contact support", "Request support"),
    (TemplateCategory.SUPPORT, "Please help resolve this matter", "Request assistance"),
    (TemplateCategory.SUPPORT, "I need to file a dispute about this booking", "Initiate dispute"),
    (TemplateCategory.SUPPORT, "Can we discuss the booking terms?", "Discuss terms"),
    # --- System (staff only) ---
    (TemplateCategory.SYSTEM, "Your booking has been confirmed", "System booking confirmation"),
    (TemplateCategory.SYSTEM, "Reminder: Your appointment is in {{hours}} hours", "System reminder"),
    (TemplateCategory.SYSTEM, "Payment received: {{amount}} tokens", "Payment confirmation"),
    (TemplateCategory.SYSTEM, "Booking cancelled - refund processed", "Cancellation notice"),
    (TemplateCategory.SYSTEM, "Please rate your experience", "Rating request"),
]


async def seed(session) -> int:
    """Insert missing catalog templates; returns how many were created."""
    repo = TemplateRepositoryImpl(session)
    created = 0
    for category, text, description in TEMPLATES:
        if await repo.find_by_text(category, text) is not None:
            continue
        await repo.create(
            ChatTemplate.create(
                category=category,
                template_text=text,
                variables=extract_variables(text),
                description=description,
            )
        )
        created += 1
    await session.commit()
    return created


async def main():
    if AsyncSessionLocal is None:
        raise RuntimeError("Database engine is not configured")
    async with AsyncSessionLocal() as session:
        created = await seed(session)
    await engine.dispose()
    print(f"Seeded {created} chat templates ({len(TEMPLATES) - created} already present).")


if __name__ == "__main__":
    asyncio.run(main())
