# core/template_engine.py
"""
Template rendering for outbound email

Renders Jinja2 templates with autoescaping and strict undefined variables and
derives a plain-text alternative from the rendered HTML.
"""

import re
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Any, Optional

from jinja2 import Environment, select_autoescape, StrictUndefined
from jinja2.exceptions import TemplateError, UndefinedError, TemplateSyntaxError
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)


@dataclass
class TemplateRenderResult:
    """Result of template rendering operation"""
    html: str
    text: str
    size_bytes: int
    render_time_ms: float


class SecureTemplateEngine:
    """
    Jinja2 environment configured for email bodies
    """

    def __init__(self, max_template_size: int = 256 * 1024):
        self.max_template_size = max_template_size
        self.env = Environment(
            autoescape=select_autoescape(['html', 'xml'], default_for_string=True),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            cache_size=16
        )

    def render_template(self, template_content: str, variables: Dict[str, Any]) -> TemplateRenderResult:
        """
        Render an HTML template and its plain-text alternative

        Args:
            template_content: Jinja2 template string
            variables: Template variables dictionary

        Returns:
            TemplateRenderResult with both bodies
        """
        start_time = datetime.now()

        if not template_content or not isinstance(template_content, str):
            raise ValueError("Template content must be a non-empty string")

        if len(template_content.encode('utf-8')) > self.max_template_size:
            raise ValueError(f"Template size exceeds limit of {self.max_template_size} bytes")

        try:
            template = self.env.from_string(template_content)
            rendered_html = template.render(**variables)
        except UndefinedError as e:
            raise TemplateError(f"Template variable error: {str(e)}")
        except TemplateSyntaxError as e:
            raise TemplateError(f"Template syntax error: {str(e)}")

        text = self._html_to_text(rendered_html)
        size_bytes = len(rendered_html.encode('utf-8')) + len(text.encode('utf-8'))
        render_time_ms = (datetime.now() - start_time).total_seconds() * 1000

        logger.debug(f"Template rendered in {render_time_ms:.2f}ms, size: {size_bytes:,} bytes")

        return TemplateRenderResult(
            html=rendered_html,
            text=text,
            size_bytes=size_bytes,
            render_time_ms=render_time_ms
        )

    def _html_to_text(self, html_content: Optional[str]) -> str:
        """
        Convert HTML to plain text with proper formatting for email
        """
        if not html_content:
            return ""

        soup = BeautifulSoup(html_content, 'html.parser')

        for br in soup.find_all('br'):
            br.replace_with('\n')

        for p in soup.find_all('p'):
            p.insert_after('\n\n')

        for header in soup.find_all(['h1', 'h2', 'h3', 'h4', 'h5', 'h6']):
            header.insert_before('\n')
            header.insert_after('\n\n')

        for link in soup.find_all('a', href=True):
            link_text = link.get_text()
            href = link['href']
            if href != link_text:
                link.replace_with(f"{link_text} ({href})")

        text = soup.get_text()

        text = re.sub(r'[ \t]+', ' ', text)
        text = re.sub(r' *\n *', '\n', text)
        text = re.sub(r'\n{3,}', '\n\n', text)
        return text.strip()
