"""
Renders the OpenVPN client configuration handed to users.
"""
import logging
import os

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError,
    TemplateNotFound,
)

from ..exceptions import TemplateRenderFailure


class ConfigRenderer:
    """Renders the client config template.

    The template receives ``DNSName``, ``Username``, ``CA``, ``Certificate``
    and ``PrivateKey``. Undefined placeholders are errors.
    """

    def __init__(self, template_path: str):
        self.template_path = template_path
        self.logger = logging.getLogger(__name__)

    def render(self, dns_name: str, username: str, ca: str, certificate: str, private_key: str) -> str:
        directory, name = os.path.split(os.path.abspath(self.template_path))
        environment = Environment(
            loader=FileSystemLoader(directory),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )
        try:
            template = environment.get_template(name)
        except TemplateNotFound as e:
            self.logger.error(f"unable to load config template {self.template_path}")
            raise TemplateRenderFailure(f"config template not found: {self.template_path}") from e
        except TemplateError as e:
            self.logger.error(f"unable to load config template {self.template_path}: {e}")
            raise TemplateRenderFailure(f"unable to load config template: {e}") from e

        try:
            return template.render(
                DNSName=dns_name,
                Username=username,
                CA=ca,
                Certificate=certificate,
                PrivateKey=private_key,
            )
        except TemplateError as e:
            self.logger.error(f"unable to resolve config template: {e}")
            raise TemplateRenderFailure(f"unable to resolve config template: {e}") from e
