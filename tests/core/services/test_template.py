"""
Test suite for the Renderer template service.

Run tests:
    pytest tests/core/services/test_template.py -v
"""

import pytest
from jinja2 import TemplateNotFound

from transit_api.core.services.brevo import OTP_EMAIL_TEMPLATE
from transit_api.core.services.template import Renderer


@pytest.fixture(autouse=True)
def reset_renderer():
    Renderer._env = None
    yield
    Renderer._env = None


class TestRenderer:

    @pytest.mark.asyncio
    async def test_not_initialized(self):
        assert Renderer.is_initialized() is False
        with pytest.raises(RuntimeError):
            await Renderer.render_template("anything.html")

    @pytest.mark.asyncio
    async def test_renders_context(self, tmp_path):
        (tmp_path / "hello.html").write_text("Hi {{ name }}", encoding="utf-8")
        Renderer.initialize(str(tmp_path))

        assert Renderer.is_initialized() is True
        assert await Renderer.render_template("hello.html", {"name": "Sana"}) == "Hi Sana"

    @pytest.mark.asyncio
    async def test_autoescape(self, tmp_path):
        (tmp_path / "hello.html").write_text("Hi {{ name }}", encoding="utf-8")
        Renderer.initialize(str(tmp_path))

        rendered = await Renderer.render_template("hello.html", {"name": "<b>x</b>"})
        assert rendered == "Hi &lt;b&gt;x&lt;/b&gt;"

    @pytest.mark.asyncio
    async def test_missing_template(self, tmp_path):
        Renderer.initialize(str(tmp_path))
        with pytest.raises(TemplateNotFound):
            await Renderer.render_template("missing.html")


class TestOTPEmailTemplate:

    @pytest.mark.asyncio
    async def test_contains_code_and_expiry(self, test_settings):
        Renderer.initialize(test_settings.TEMPLATE_DIR)

        html = await Renderer.render_template(
            OTP_EMAIL_TEMPLATE,
            {
                "app_name": "CFD Transport API",
                "name": "Sana",
                "otp_code": "123456",
                "expiry_minutes": 30,
            },
        )

        assert "123456" in html
        assert "Sana" in html
        assert "30 minutes" in html
