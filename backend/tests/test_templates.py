"""Template rendering and template messaging tests."""
import pytest

from marketplace.api.deps import build_template_service
from marketplace.domain.admin.models import UserRole
from marketplace.domain.common.errors import (
    AuthorizationError,
    MessagingNotAllowedError,
    MissingVariablesError,
    NotFoundError,
    ValidationError,
)
from marketplace.domain.template.rendering import extract_variables, render
from marketplace.infra.db.repositories.template_repo import TemplateRepositoryImpl

CONFIRM = "Can we confirm the appointment for {{time}} on {{date}}?"


@pytest.mark.unit
def test_render_substitutes_all_placeholders():
    assert render(CONFIRM, {"time": "3pm", "date": "Friday"}) == "Can we confirm the appointment for 3pm on Friday?"


@pytest.mark.unit
def test_render_names_missing_variables():
    with pytest.raises(MissingVariablesError) as exc:
        render(CONFIRM, {"time": "3pm"})
    assert exc.value.missing == ["date"]
    assert exc.value.code == "MISSING_VARIABLES"


@pytest.mark.unit
def test_empty_value_counts_as_missing():
    with pytest.raises(MissingVariablesError) as exc:
        render(CONFIRM, {"time": "", "date": None})
    assert exc.value.missing == ["time", "date"]


@pytest.mark.unit
def test_extract_variables_keeps_first_appearance_order():
    assert extract_variables("{{b}} then {{a}} then {{b}}") == ["b", "a"]
    assert extract_variables("no placeholders") == []


@pytest.mark.unit
def test_extra_variables_are_ignored():
    assert render("Session is complete", {"unused": "x"}) == "Session is complete"


@pytest.fixture
def templates(db_session):
    return build_template_service(db_session)


@pytest.fixture
async def setup(make_user, make_booking):
    seeker = await make_user(balance=500)
    provider = await make_user(role=UserRole.PROVIDER)
    admin = await make_user(role=UserRole.ADMIN)
    booking = await make_booking(seeker, provider, token_amount=100)
    return seeker, provider, admin, booking


async def test_send_template_posts_rendered_message(setup, templates, db_session):
    seeker, _, admin, booking = setup
    template = await templates.create_template(admin, "BOOKING_COORDINATION", CONFIRM, "Confirm appointment time")
    assert template.variables == ["time", "date"]

    message = await templates.send_template(seeker, booking.id, template.id, {"time": "3pm", "date": "Friday"})

    assert message.content == "Can we confirm the appointment for 3pm on Friday?"
    assert message.template_id == template.id
    assert not message.is_flagged
    stored = await TemplateRepositoryImpl(db_session).get(template.id)
    assert stored.usage_count == 1


async def test_send_template_missing_variable(setup, templates):
    seeker, _, admin, booking = setup
    template = await templates.create_template(admin, "BOOKING_COORDINATION", CONFIRM)
    with pytest.raises(MissingVariablesError) as exc:
        await templates.send_template(seeker, booking.id, template.id, {"time": "3pm"})
    assert exc.value.missing == ["date"]


async def test_send_template_goes_through_chat_gate(setup, templates, booking_service, make_user):
    seeker, provider, admin, booking = setup
    template = await templates.create_template(admin, "LOGISTICS", "Heading to the location now")
    outsider = await make_user()

    with pytest.raises(AuthorizationError):
        await templates.send_template(outsider, booking.id, template.id)

    await booking_service.update_status(booking.id, "CANCELLED", seeker)
    with pytest.raises(MessagingNotAllowedError):
        await templates.send_template(provider, booking.id, template.id)


async def test_flagged_template_text_is_still_flagged(setup, templates):
    seeker, _, admin, booking = setup
    template = await templates.create_template(admin, "LOGISTICS", "Please share the exact address")
    message = await templates.send_template(seeker, booking.id, template.id)
    assert message.is_flagged


async def test_system_templates_are_staff_only(setup, templates):
    seeker, _, admin, booking = setup
    system = await templates.create_template(admin, "SYSTEM", "Payment received: {{amount}} tokens")

    assert system.id not in [t.id for t in await templates.list_templates(seeker)]
    assert system.id in [t.id for t in await templates.list_templates(admin)]
    with pytest.raises(NotFoundError):
        await templates.get_template(system.id, seeker)
    with pytest.raises(AuthorizationError):
        await templates.send_template(seeker, booking.id, system.id, {"amount": 100})


async def test_soft_deleted_template_is_hidden_and_unsendable(setup, templates):
    seeker, _, admin, booking = setup
    template = await templates.create_template(admin, "SUPPORT", "There seems to be an issue")
    await templates.delete_template(admin, template.id)

    assert template.id not in [t.id for t in await templates.list_templates(seeker)]
    assert template.id in [t.id for t in await templates.list_all(admin)]
    with pytest.raises(NotFoundError):
        await templates.send_template(seeker, booking.id, template.id)


async def test_update_recomputes_variables(setup, templates):
    _, _, admin, _ = setup
    template = await templates.create_template(admin, "LOGISTICS", "I'm {{distance}} minutes away")
    updated = await templates.update_template(admin, template.id, template_text="Arriving at {{time}} on {{date}}")
    assert updated.variables == ["time", "date"]


async def test_only_staff_manage_templates(setup, templates):
    seeker, _, _, _ = setup
    with pytest.raises(AuthorizationError):
        await templates.create_template(seeker, "SUPPORT", "I need to contact support")


async def test_create_validation(setup, templates):
    _, _, admin, _ = setup
    with pytest.raises(ValidationError):
        await templates.create_template(admin, "NOT_A_CATEGORY", "text")
    with pytest.raises(ValidationError):
        await templates.create_template(admin, "SUPPORT", "   ")


async def test_grouping_and_stats(setup, templates):
    seeker, _, admin, booking = setup
    first = await templates.create_template(admin, "SUPPORT", "I have a question about the booking")
    await templates.create_template(admin, "LOGISTICS", "Session is complete")
    await templates.send_template(seeker, booking.id, first.id)

    grouped = await templates.list_by_category(seeker)
    assert set(grouped) == {"SUPPORT", "LOGISTICS"}

    stats = await templates.stats(admin)
    assert stats["totalActive"] == 2
    assert stats["byCategory"]["SUPPORT"] == 1
    assert stats["topTemplates"][0].id == first.id
