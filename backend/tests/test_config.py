"""Configuration layering and runtime overrides."""
import pytest
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings

from marketplace.config_store import ConfigStore, read_config_file
from marketplace.domain.admin.models import UserRole
from marketplace.domain.chat.content_filter import get_content_filter
from marketplace.settings import Settings, get_config_store


class _Settings(BaseSettings):
    min_token_purchase: int = 10
    content_filter_version: str = "1"
    secret_key: str = "default"


@pytest.mark.unit
def test_file_overrides_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("min_token_purchase: 25\n")
    store = ConfigStore(_Settings, str(path))
    assert store.get_settings().min_token_purchase == 25
    assert store.get_settings().secret_key == "default"


@pytest.mark.unit
def test_unusable_file_is_ignored(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")
    assert read_config_file(path) == {}
    assert read_config_file(tmp_path / "missing.yaml") == {}
    assert read_config_file(tmp_path / "config.toml") == {}


@pytest.mark.unit
def test_overrides_sit_on_top_and_clear(tmp_path):
    path = tmp_path / "config.json"
    path.write_text('{"min_token_purchase": 25}')
    store = ConfigStore(_Settings, str(path))

    assert store.update({"min_token_purchase": 50}).min_token_purchase == 50
    path.write_text('{"min_token_purchase": 30, "content_filter_version": "9"}')
    reloaded = store.reload_from_file()
    assert (reloaded.min_token_purchase, reloaded.content_filter_version) == (50, "9")

    assert store.clear_overrides().min_token_purchase == 30
    assert store.overrides == {}


@pytest.mark.unit
def test_rejected_override_keeps_previous_settings():
    store = ConfigStore(_Settings)
    with pytest.raises(ValueError):
        store.update({"secret_key": "leaked"}, allowed=["min_token_purchase"])
    with pytest.raises(ValueError):
        store.update({"not_a_setting": 1})
    with pytest.raises(ValueError):
        store.update({"min_token_purchase": "lots"})
    assert store.get_settings().min_token_purchase == 10
    assert store.overrides == {}


@pytest.mark.unit
def test_empty_filter_vocabulary_is_rejected(tmp_path):
    with pytest.raises(PydanticValidationError):
        Settings(content_filter_terms=[" ", ""])

    path = tmp_path / "config.yaml"
    path.write_text("content_filter_version: \"7\"\n")
    store = ConfigStore(Settings, str(path))
    assert store.get_settings().content_filter_version == "7"
    path.write_text("content_filter_terms: []\ncontent_filter_version: \"8\"\n")
    with pytest.raises(PydanticValidationError):
        store.reload_from_file()
    assert store.get_settings().content_filter_version == "7"
    assert "whatsapp" in store.get_settings().content_filter_terms


@pytest.fixture
def clean_overrides():
    yield
    get_config_store().clear_overrides()


@pytest.mark.integration
async def test_filter_vocabulary_is_not_runtime_tunable(client, make_user, auth_headers, clean_overrides):
    admin = await make_user(role=UserRole.ADMIN)
    headers = auth_headers(admin)

    for body in (
        {"content_filter_terms": [], "content_filter_version": "2"},
        {"content_filter_terms": ["pier"], "content_filter_version": "test-1"},
        {"content_filter_version": "test-2"},
    ):
        response = await client.put("/v1/admin/config", json=body, headers=headers)
        assert response.status_code == 422
        assert "content_filter" in response.json()["message"]

    assert get_config_store().overrides == {}
    result = get_content_filter().check("add me on WhatsApp")
    assert result.flagged
    assert result.version == "2"


@pytest.mark.integration
async def test_admin_retunes_business_limits(client, make_user, auth_headers, clean_overrides):
    admin = await make_user(role=UserRole.ADMIN)
    headers = auth_headers(admin)

    response = await client.put("/v1/admin/config", json={"min_token_purchase": 25}, headers=headers)
    assert response.status_code == 200
    assert response.json()["settings"]["min_token_purchase"] == 25
    assert "content_filter_terms" not in response.json()["settings"]

    invalid = await client.put("/v1/admin/config", json={"min_token_purchase": "lots"}, headers=headers)
    assert invalid.status_code == 422

    not_tunable = await client.put("/v1/admin/config", json={"secret_key": "x"}, headers=headers)
    assert not_tunable.status_code == 422
    assert "secret_key" in not_tunable.json()["message"]


@pytest.mark.integration
async def test_config_requires_admin_role(client, make_user, auth_headers):
    employee = await make_user(role=UserRole.EMPLOYEE)
    seeker = await make_user()
    assert (await client.get("/v1/admin/config", headers=auth_headers(employee))).status_code == 403
    assert (await client.get("/v1/admin/config", headers=auth_headers(seeker))).status_code == 403
