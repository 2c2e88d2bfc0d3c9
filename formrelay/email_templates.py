"""
Notification Email Templates
Logic-less templates compiled once at import time and rendered per submission

Syntax:
    {{field}}                          value of ``field`` (HTML-escaped in the HTML body)
    {{#if field}} ... {{/if}}          body rendered only when ``field`` is truthy
    {{#if field}} ... {{else}} ... {{/if}}

Dotted names (``{{address.city}}``) walk nested mappings. No other expressions
are evaluated.
"""

import html
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from .schemas import FormKind

# Brand colors used by the notification layout
THEME = {
    "primary": "#0A2240",
    "background": "#ffffff",
    "text_primary": "#333333",
    "text_muted": "#666666",
    "border": "#dddddd",
    "divider": "#eeeeee",
}

SITE_NAME = "Carlora"

_NAME = r"[A-Za-z_][\w.]*"
_TAG_PATTERN = re.compile(r"\{\{\s*(?:#if\s+(?P<if>" + _NAME + r")|(?P<else>else)|(?P<endif>/if)|(?P<var>" + _NAME + r"))\s*\}\}")


class TemplateSyntaxError(ValueError):
    """Raised when a template source has unbalanced or malformed block tags"""


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Placeholder:
    name: str


@dataclass(frozen=True)
class Conditional:
    name: str
    body: tuple
    otherwise: tuple = ()


Node = Union[Text, Placeholder, Conditional]


@dataclass(frozen=True)
class RenderedEmail:
    html: str
    text: str


def compile_template(source: str) -> tuple[Node, ...]:
    """Tokenize a template source into an immutable node tree"""
    # Each frame: [if-name, body nodes, else nodes or None, offset of the opening tag]
    stack: list[list] = []
    root: list[Node] = []
    position = 0

    def current() -> list[Node]:
        if not stack:
            return root
        frame = stack[-1]
        return frame[2] if frame[2] is not None else frame[1]

    for match in _TAG_PATTERN.finditer(source):
        if match.start() > position:
            current().append(Text(source[position : match.start()]))
        position = match.end()

        if match.group("if"):
            stack.append([match.group("if"), [], None, match.start()])
        elif match.group("else"):
            if not stack or stack[-1][2] is not None:
                raise TemplateSyntaxError(f"Unexpected {{{{else}}}} at offset {match.start()}")
            stack[-1][2] = []
        elif match.group("endif"):
            if not stack:
                raise TemplateSyntaxError(f"Unexpected {{{{/if}}}} at offset {match.start()}")
            name, body, otherwise, _ = stack.pop()
            current().append(Conditional(name, tuple(body), tuple(otherwise or ())))
        else:
            current().append(Placeholder(match.group("var")))

    if stack:
        raise TemplateSyntaxError(f"Unclosed {{{{#if {stack[-1][0]}}}}} at offset {stack[-1][3]}")

    if position < len(source):
        root.append(Text(source[position:]))

    return tuple(root)


def lookup(data: Mapping, name: str) -> Any:
    value: Any = data
    for part in name.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


def is_truthy(value: Any) -> bool:
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, (str, list, tuple, dict, set)):
        return len(value) > 0
    return True


def stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def render_nodes(nodes: tuple, data: Mapping, escape: bool) -> str:
    parts: list[str] = []
    for node in nodes:
        if isinstance(node, Text):
            parts.append(node.value)
        elif isinstance(node, Placeholder):
            value = stringify(lookup(data, node.name))
            parts.append(html.escape(value, quote=True) if escape else value)
        else:
            branch = node.body if is_truthy(lookup(data, node.name)) else node.otherwise
            parts.append(render_nodes(branch, data, escape))
    return "".join(parts)


class EmailTemplate:
    """Paired HTML and plain-text template, compiled once and shared read-only"""

    __slots__ = ("_html", "_text")

    def __init__(self, html_content: str, text_content: str):
        self._html = compile_template(html_content)
        self._text = compile_template(text_content)

    def render(self, data: Mapping[str, Any]) -> RenderedEmail:
        return RenderedEmail(
            html=render_nodes(self._html, data, escape=True),
            text=render_nodes(self._text, data, escape=False),
        )


# ============================================
# Layout helpers
# ============================================


def get_base_template(title: str, content_sections: str, form_name: str) -> str:
    """Base HTML wrapper shared by all notification emails"""
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: {THEME['text_primary']}; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background-color: {THEME['primary']}; color: #ffffff; padding: 20px; text-align: center; border-radius: 5px 5px 0 0;">
    <h1 style="margin: 0;">{title}</h1>
  </div>
  <div style="padding: 20px; border: 1px solid {THEME['border']}; border-top: none; border-radius: 0 0 5px 5px;">
    {content_sections}
    <div style="margin-top: 30px; padding-top: 15px; border-top: 1px solid {THEME['divider']}; font-size: 12px; color: {THEME['text_muted']};">
      <p>Submission Time: {{{{timestamp}}}}</p>
      <p>IP Address: {{{{ip}}}}</p>
      <p>User Agent: {{{{userAgent}}}}</p>
    </div>
  </div>
  <div style="margin-top: 20px; font-size: 12px; color: {THEME['text_muted']}; text-align: center;">
    <p>This is an automated message from the {SITE_NAME} website {form_name}.</p>
  </div>
</body>
</html>
"""


def field_row(label: str, value: str) -> str:
    return (
        '<div style="margin-bottom: 15px;">'
        f'<div style="font-weight: bold; margin-bottom: 5px;">{label}:</div>'
        f'<div style="margin-bottom: 15px;">{value}</div>'
        "</div>"
    )


def section(title: str, rows: str) -> str:
    return (
        f'<div style="margin-top: 25px; padding-top: 15px; border-top: 1px solid {THEME["divider"]};">'
        f'<div style="font-size: 18px; font-weight: bold; margin-bottom: 15px; color: {THEME["primary"]};">{title}</div>'
        f"{rows}"
        "</div>"
    )


def get_text_footer(form_name: str) -> str:
    return f"""
---
Submission Time: {{{{timestamp}}}}
IP Address: {{{{ip}}}}
User Agent: {{{{userAgent}}}}

This is an automated message from the {SITE_NAME} website {form_name}.
"""


# ============================================
# Contact form
# ============================================

_CONTACT_HTML = get_base_template(
    title="New Contact Form Submission",
    content_sections="".join(
        [
            field_row("Name", "{{name}}"),
            field_row("Email", "{{email}}"),
            field_row("Subject", "{{subject}}"),
            field_row("Message", "{{message}}"),
        ]
    ),
    form_name="contact form",
)

_CONTACT_TEXT = (
    """NEW CONTACT FORM SUBMISSION

Name: {{name}}
Email: {{email}}
Subject: {{subject}}

Message:
{{message}}
"""
    + get_text_footer("contact form")
)

CONTACT_FORM_TEMPLATE = EmailTemplate(_CONTACT_HTML, _CONTACT_TEXT)


# ============================================
# Application form
# ============================================

_ADDRESS_HTML = (
    "{{#if street}}{{street}}<br>{{/if}}"
    "{{#if city}}{{city}}{{#if state}}, {{state}}{{/if}} {{#if zipCode}}{{zipCode}}{{/if}}{{/if}}"
)

_APPLICATION_HTML = get_base_template(
    title="New Application Submission",
    content_sections="".join(
        [
            section(
                "Personal Information",
                field_row("Name", "{{firstName}} {{lastName}}")
                + field_row("Email", "{{email}}")
                + field_row("Phone", "{{phone}}")
                + field_row("Address", _ADDRESS_HTML),
            ),
            section(
                "Professional Information",
                field_row("Service Package", "{{servicePackage}}")
                + field_row("Business Stage", "{{businessStage}}")
                + field_row("Primary Area of Expertise", "{{primaryAreaOfExpertise}}")
                + field_row("Years of Experience", "{{yearsOfExperience}}"),
            ),
            section(
                "Project Details",
                field_row("Consultation Goals", "{{consultationGoals}}")
                + field_row("Challenges", "{{challenges}}")
                + field_row("Business Objectives", "{{businessObjectives}}")
                + field_row("Success Metrics", "{{successMetrics}}")
                + field_row("Budget", "{{budget}}")
                + field_row("Project Duration", "{{projectDuration}}")
                + field_row("Preferred Timeline", "{{preferredTimeline}}")
                + "{{#if additionalDetails}}"
                + field_row("Additional Details", "{{additionalDetails}}")
                + "{{/if}}",
            ),
        ]
    ),
    form_name="application form",
)

_APPLICATION_TEXT = (
    """NEW APPLICATION SUBMISSION

PERSONAL INFORMATION
--------------------
Name: {{firstName}} {{lastName}}
Email: {{email}}
Phone: {{phone}}
Address: {{#if street}}{{street}}, {{/if}}{{#if city}}{{city}}{{#if state}}, {{state}}{{/if}} {{#if zipCode}}{{zipCode}}{{/if}}{{/if}}

PROFESSIONAL INFORMATION
------------------------
Service Package: {{servicePackage}}
Business Stage: {{businessStage}}
Primary Area of Expertise: {{primaryAreaOfExpertise}}
Years of Experience: {{yearsOfExperience}}

PROJECT DETAILS
---------------
Consultation Goals: {{consultationGoals}}

Challenges: {{challenges}}

Business Objectives: {{businessObjectives}}

Success Metrics: {{successMetrics}}

Budget: {{budget}}
Project Duration: {{projectDuration}}
Preferred Timeline: {{preferredTimeline}}
{{#if additionalDetails}}
Additional Details: {{additionalDetails}}
{{/if}}"""
    + get_text_footer("application form")
)

APPLICATION_FORM_TEMPLATE = EmailTemplate(_APPLICATION_HTML, _APPLICATION_TEXT)


TEMPLATES: dict[FormKind, EmailTemplate] = {
    FormKind.CONTACT: CONTACT_FORM_TEMPLATE,
    FormKind.APPLICATION: APPLICATION_FORM_TEMPLATE,
}


def template_for(kind: FormKind) -> EmailTemplate:
    return TEMPLATES[kind]
