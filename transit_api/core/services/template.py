from jinja2 import Environment, FileSystemLoader


class Renderer:
    _env: Environment | None = None

    @classmethod
    def initialize(cls, template_dir: str) -> None:
        """
        Set up the Jinja2 environment used for email bodies.

        Autoescaping is on, so names supplied at registration are rendered as
        text rather than markup.

        Args:
            template_dir (str): The directory containing the template files.
        """
        cls._env = Environment(
            loader=FileSystemLoader(template_dir), autoescape=True, enable_async=True
        )

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._env is not None

    @classmethod
    async def render_template(cls, template_name: str, context: dict | None = None) -> str:
        """
        Render ``template_name`` with ``context``.

        Raises:
            TemplateNotFound: If the specified template cannot be found.
            TemplateError: If an error occurs during template rendering.
            RuntimeError: If the renderer has not been initialized.
        """
        if cls._env is None:
            raise RuntimeError("Renderer not initialized. Call initialize() first.")
        template = cls._env.get_template(template_name)
        return await template.render_async(**(context or {}))
