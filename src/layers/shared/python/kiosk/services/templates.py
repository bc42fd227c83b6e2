"""Email and chat message templates.

Pure functions: they build subjects, bodies, chat cards and the small
informational PDFs attached to the welcome email. Sending lives in the
email and chat services.
"""

import html as html_module
import io
from dataclasses import dataclass, field
from typing import Any

from PIL import Image, ImageDraw

from kiosk.config import StudioSettings

_EMAIL_STYLE = """
    body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .header { background: #000; color: #fff; padding: 20px; text-align: center; }
    .content { background: #f9f9f9; padding: 30px; }
    .info-box { background: #fff; padding: 20px; border-radius: 8px; margin: 20px 0; }
    .info-row { display: flex; justify-content: space-between; padding: 8px 0; border-bottom: 1px solid #eee; }
    .info-label { font-weight: bold; color: #666; }
    .cta-button { display: inline-block; background: #000; color: #fff; padding: 12px 24px; text-decoration: none; border-radius: 6px; margin: 20px 0; }
    .highlight { background: #fffbf0; border-left: 4px solid #f59e0b; padding: 15px; margin: 20px 0; }
    .footer { text-align: center; padding: 20px; color: #666; font-size: 14px; }
"""

SAFETY_GUIDELINES = [
    "Please wear your visitor badge at all times",
    "Stay with your host throughout your visit",
    "In case of emergency, contact security immediately",
    "Please follow all studio policies and guidelines",
]


@dataclass
class EmailTemplate:
    """Rendered email content."""

    subject: str
    html: str
    text: str | None = None


@dataclass
class HostNotificationData:
    """Data for the host arrival email."""

    host_name: str
    host_email: str
    visitor_name: str
    visitor_email: str
    visit_time: str
    visitor_company: str | None = None
    record_url: str | None = None


@dataclass
class WelcomeEmailData:
    """Data for the visitor welcome email."""

    visitor_name: str
    visitor_email: str
    host_name: str
    visit_date: str
    studio: StudioSettings = field(default_factory=StudioSettings)


@dataclass
class VisitorNotificationData:
    """Data for chat notifications about a visitor."""

    visitor_name: str
    visitor_email: str
    host_name: str
    host_email: str
    arrival_time: str
    visitor_company: str | None = None
    record_url: str | None = None
    photo_url: str | None = None


def _escape_html(value: str | None) -> str:
    """Escape a value for safe HTML insertion."""
    if value is None:
        return ""
    return html_module.escape(str(value))


def _info_row(label: str, value: str | None) -> str:
    return (
        '<div class="info-row">'
        f'<span class="info-label">{_escape_html(label)}:</span>'
        f"<span>{_escape_html(value)}</span>"
        "</div>"
    )


def _wrap_html(title: str, header: str, content: str, footer_lines: list[str]) -> str:
    footer = "".join(f"<p>{_escape_html(line)}</p>" for line in footer_lines)
    return f"""<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <title>{_escape_html(title)}</title>
    <style>{_EMAIL_STYLE}</style>
  </head>
  <body>
    <div class="container">
      <div class="header">{header}</div>
      <div class="content">{content}</div>
      <div class="footer">{footer}</div>
    </div>
  </body>
</html>
"""


def host_notification_template(data: HostNotificationData, studio_name: str = "SQLA Studio") -> EmailTemplate:
    """Email telling a host that their visitor has arrived."""
    rows = [
        _info_row("Name", data.visitor_name),
        _info_row("Email", data.visitor_email),
    ]
    if data.visitor_company:
        rows.append(_info_row("Company", data.visitor_company))
    rows.append(_info_row("Arrival Time", data.visit_time))

    button = ""
    if data.record_url:
        button = f'<a href="{_escape_html(data.record_url)}" class="cta-button">View Full Record</a>'

    content = (
        f"<h2>Hello {_escape_html(data.host_name)},</h2>"
        f"<p>You have a new visitor waiting for you at {_escape_html(studio_name)}.</p>"
        f'<div class="info-box"><h3>Visitor Information</h3>{"".join(rows)}</div>'
        f"{button}"
        "<p>Please come to the reception area to meet your visitor.</p>"
    )

    html = _wrap_html(
        "Visitor Notification",
        f"<h1>{_escape_html(studio_name)}</h1><p>Visitor Notification</p>",
        content,
        [f"{studio_name} Visitor Management System", "This is an automated notification."],
    )

    text_lines = [
        f"{studio_name} - Visitor Notification",
        "",
        f"Hello {data.host_name},",
        "",
        f"You have a new visitor waiting for you at {studio_name}.",
        "",
        "Visitor Information:",
        f"- Name: {data.visitor_name}",
        f"- Email: {data.visitor_email}",
    ]
    if data.visitor_company:
        text_lines.append(f"- Company: {data.visitor_company}")
    text_lines.append(f"- Arrival Time: {data.visit_time}")
    if data.record_url:
        text_lines += ["", f"View full record: {data.record_url}"]
    text_lines += [
        "",
        "Please come to the reception area to meet your visitor.",
        "",
        "---",
        f"{studio_name} Visitor Management System",
        "This is an automated notification.",
    ]

    return EmailTemplate(
        subject=f"New Visitor Arrival: {data.visitor_name}",
        html=html,
        text="\n".join(text_lines),
    )


def welcome_email_template(data: WelcomeEmailData) -> EmailTemplate:
    """Welcome email with visit details and studio information."""
    studio = data.studio
    guidelines = "".join(f"<li>{_escape_html(item)}</li>" for item in SAFETY_GUIDELINES)

    content = (
        f"<h2>Hello {_escape_html(data.visitor_name)},</h2>"
        f"<p>Thank you for visiting {_escape_html(studio.name)}! We're excited to have you here.</p>"
        '<div class="info-box"><h3>Your Visit Details</h3>'
        f'{_info_row("Host", data.host_name)}{_info_row("Date", data.visit_date)}</div>'
        '<div class="info-box"><h3>Studio Information</h3>'
        f'{_info_row("Address", studio.address)}'
        f'{_info_row("WiFi Network", studio.wifi_network)}'
        f'{_info_row("WiFi Password", studio.wifi_password)}'
        f'{_info_row("Emergency Contact", studio.emergency_contact)}</div>'
        f'<div class="highlight"><h4>Important Safety Guidelines</h4><ul>{guidelines}</ul></div>'
        "<p>If you have any questions during your visit, don't hesitate to ask your host "
        "or contact our reception.</p>"
        "<p>We hope you have a productive and enjoyable visit!</p>"
    )

    html = _wrap_html(
        f"Welcome to {studio.name}",
        f"<h1>Welcome to {_escape_html(studio.name)}</h1>",
        content,
        [studio.name, "This email contains important information about your visit."],
    )

    text = "\n".join(
        [
            f"Welcome to {studio.name}",
            "",
            f"Hello {data.visitor_name},",
            "",
            f"Thank you for visiting {studio.name}! We're excited to have you here.",
            "",
            "Your Visit Details:",
            f"- Host: {data.host_name}",
            f"- Date: {data.visit_date}",
            "",
            "Studio Information:",
            f"- Address: {studio.address}",
            f"- WiFi Network: {studio.wifi_network}",
            f"- WiFi Password: {studio.wifi_password}",
            f"- Emergency Contact: {studio.emergency_contact}",
            "",
            "Important Safety Guidelines:",
            *(f"- {item}" for item in SAFETY_GUIDELINES),
            "",
            "If you have any questions during your visit, don't hesitate to ask your host "
            "or contact our reception.",
            "",
            "We hope you have a productive and enjoyable visit!",
            "",
            "---",
            studio.name,
        ]
    )

    return EmailTemplate(
        subject=f"Welcome to {studio.name} - Visit Information",
        html=html,
        text=text,
    )


def _link_button(text: str, url: str) -> dict[str, Any]:
    return {"buttons": [{"textButton": {"text": text, "onClick": {"openLink": {"url": url}}}}]}


def _key_value(label: str, content: str, icon: str) -> dict[str, Any]:
    return {"keyValue": {"topLabel": label, "content": content, "icon": icon}}


def visitor_arrival_message(data: VisitorNotificationData, studio_name: str = "SQLA Studio") -> dict[str, Any]:
    """Chat card announcing a visitor's arrival."""
    visitor_widgets = [
        _key_value("Name", data.visitor_name, "PERSON"),
        _key_value("Email", data.visitor_email, "EMAIL"),
    ]
    if data.visitor_company:
        visitor_widgets.append(_key_value("Company", data.visitor_company, "BOOKMARK"))
    visitor_widgets.append(_key_value("Arrival Time", data.arrival_time, "CLOCK"))

    sections: list[dict[str, Any]] = [
        {"header": "Visitor Information", "widgets": visitor_widgets},
        {
            "header": "Host Information",
            "widgets": [
                _key_value("Host Name", data.host_name, "PERSON"),
                _key_value("Host Email", data.host_email, "EMAIL"),
            ],
        },
    ]
    if data.record_url:
        sections.append({"widgets": [_link_button("View Monday.com Record", data.record_url)]})

    return {
        "text": f"New visitor arrival at {studio_name}",
        "cards": [
            {
                "header": {
                    "title": f"Visitor: {data.visitor_name}",
                    "subtitle": f"Host: {data.host_name}",
                },
                "sections": sections,
            }
        ],
    }


def visitor_completed_message(data: VisitorNotificationData) -> dict[str, Any]:
    """Chat card reporting a completed registration."""
    widgets: list[dict[str, Any]] = [
        {
            "textParagraph": {
                "text": (
                    "NDA signed and processed\n"
                    "Welcome email sent to visitor\n"
                    f"Host notification sent to {data.host_name}\n"
                    "Files uploaded to Monday.com"
                )
            }
        }
    ]
    if data.record_url:
        widgets.append(_link_button("View Complete Record", data.record_url))

    return {
        "text": "Visitor registration completed",
        "cards": [
            {
                "header": {
                    "title": f"{data.visitor_name} - Registration Complete",
                    "subtitle": "All documents processed and notifications sent",
                },
                "sections": [{"header": "Completed Actions", "widgets": widgets}],
            }
        ],
    }


def custom_message(
    title: str,
    content: str,
    action_url: str | None = None,
    action_text: str | None = None,
) -> dict[str, Any]:
    """Chat card with free text and an optional link button."""
    widgets: list[dict[str, Any]] = [{"textParagraph": {"text": content}}]
    if action_url and action_text:
        widgets.append(_link_button(action_text, action_url))
    return {"text": title, "cards": [{"sections": [{"widgets": widgets}]}]}


def render_info_pdf(title: str, lines: list[str]) -> bytes:
    """Render a one-page letter-size PDF with a title and text lines."""
    page = Image.new("RGB", (612, 792), "white")
    draw = ImageDraw.Draw(page)

    draw.text((72, 72), title, fill="black")
    y = 104
    for line in lines:
        draw.text((72, y), line, fill="black")
        y += 18

    output = io.BytesIO()
    page.save(output, format="PDF", resolution=72.0)
    return output.getvalue()


def studio_map_pdf(studio: StudioSettings) -> bytes:
    return render_info_pdf(f"{studio.name} Map", [studio.address, "Reception is on the ground floor."])


def wifi_info_pdf(studio: StudioSettings) -> bytes:
    return render_info_pdf(
        f"{studio.name} - Visitor Information",
        [
            f"WiFi Network: {studio.wifi_network}",
            f"Password: {studio.wifi_password}",
            f"Emergency Contact: {studio.emergency_contact}",
        ],
    )
