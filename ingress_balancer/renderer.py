import os
import shutil
from typing import Iterable

from jinja2 import Environment, StrictUndefined, TemplateError

from .base import Logger
from .config import StaticConfig
from .entries import RoutingEntry, prepare_entries
from .errors import RenderError

DEFAULT_TEMPLATE = os.path.join(os.path.dirname(__file__), "templates", "nginx.tmpl")


class ConfigRenderer:
    """Рендеринг nginx.conf из шаблона рабочей директории.

    Шаблон читается с диска при каждом рендеринге, правки подхватываются
    следующим update.
    """

    def __init__(self, conf: StaticConfig):
        self.conf = conf
        self.logger = Logger.get_logger("nginx")
        self.env = Environment(
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            autoescape=False,
        )

    def render(self, entries: Iterable[RoutingEntry]) -> bytes:
        try:
            with open(self.conf.template_path, "r", encoding="utf-8") as f:
                template_text = f.read()
        except OSError as e:
            raise RenderError(f"unable to read nginx template {self.conf.template_path}: {e}") from e

        prepared = prepare_entries(entries)
        try:
            template = self.env.from_string(template_text)
            output = template.render(conf=self.conf, entries=prepared)
        except TemplateError as e:
            raise RenderError(f"unable to render nginx config, it will be out of date: {e}") from e

        self.logger.debug(f"Rendered nginx config with {len(prepared)} entries")
        return output.encode("utf-8")


def install_default_template(working_dir: str, template_filename: str = "nginx.tmpl") -> bool:
    """Копирует шаблон из пакета в рабочую директорию, если его там ещё нет."""
    target = os.path.join(working_dir, template_filename)
    if os.path.exists(target):
        return False
    os.makedirs(working_dir, exist_ok=True)
    shutil.copyfile(DEFAULT_TEMPLATE, target)
    return True
