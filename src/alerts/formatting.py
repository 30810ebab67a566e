"""Subject and HTML body for alert notification emails."""

from datetime import datetime
from html import escape

from src.alerts.schemas import AlertTrigger

ALERT_TYPE_LABELS: dict[str, str] = {
    "PRICE_ABOVE": "Price Alert (Above Threshold)",
    "PRICE_BELOW": "Price Alert (Below Threshold)",
    "VOLUME_ABOVE": "Volume Alert",
    "CHANGE_PERCENT": "Price Change Alert",
}

DEFAULT_BASE_URL = "https://pennystockstracker.com"


def format_alert_type(alert_type: str) -> str:
    return ALERT_TYPE_LABELS.get(alert_type, "Alert Triggered")


def format_value(alert_type: str, value: float) -> str:
    """Render a measured value or threshold in the unit of the alert kind.

    >>> format_value("PRICE_ABOVE", 12.5)
    '$12.50'
    >>> format_value("CHANGE_PERCENT", -7.5)
    '-7.50%'
    """
    if alert_type in ("PRICE_ABOVE", "PRICE_BELOW"):
        return f"${value:.2f}"
    if alert_type == "VOLUME_ABOVE":
        if float(value).is_integer():
            return f"{value:,.0f}"
        return f"{value:,.2f}"
    if alert_type == "CHANGE_PERCENT":
        sign = "+" if value > 0 else ""
        return f"{sign}{value:.2f}%"
    return str(value)


def build_subject(trigger: AlertTrigger) -> str:
    return f"Alert: {trigger.ticker_symbol} {format_alert_type(trigger.alert_type)}"


def build_html_body(
    trigger: AlertTrigger,
    triggered_at: datetime,
    base_url: str = DEFAULT_BASE_URL,
) -> str:
    """Render the notification email.

    Args:
        trigger: Firing to describe.
        triggered_at: Evaluation instant shown to the recipient.
        base_url: Public site root for the ticker and dashboard links.

    Returns:
        HTML document as a string.
    """
    base_url = base_url.rstrip("/")
    symbol = escape(trigger.ticker_symbol)
    name = escape(trigger.ticker_name)
    label = escape(format_alert_type(trigger.alert_type))
    current = escape(format_value(trigger.alert_type, trigger.measured_value))
    threshold = escape(format_value(trigger.alert_type, trigger.threshold))
    when = triggered_at.strftime("%Y-%m-%d %H:%M:%S %Z").strip()
    ticker_url = escape(f"{base_url}/ticker/{trigger.ticker_symbol}", quote=True)
    dashboard_url = escape(f"{base_url}/user/dashboard", quote=True)

    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>Penny Stocks Alert</title>
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
    <h2 style="color: #2563eb;">Stock Alert Triggered</h2>

    <div style="background: #f8fafc; padding: 20px; border-radius: 8px; margin: 20px 0;">
      <h3 style="margin: 0 0 15px 0; color: #1e40af;">{symbol} - {name}</h3>
      <p style="margin: 10px 0;"><strong>Alert Type:</strong> {label}</p>
      <p style="margin: 10px 0;"><strong>Current Value:</strong> {current}</p>
      <p style="margin: 10px 0;"><strong>Threshold:</strong> {threshold}</p>
      <p style="margin: 10px 0;"><strong>Triggered:</strong> {when}</p>
    </div>

    <div style="margin: 30px 0;">
      <a href="{ticker_url}"
         style="background: #2563eb; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; display: inline-block;">
        View {symbol} Details
      </a>
    </div>

    <hr style="border: none; border-top: 1px solid #e5e7eb; margin: 30px 0;">

    <p style="font-size: 14px; color: #6b7280;">
      This alert was sent because you have an active alert set up for {symbol}.
      You can manage your alerts in your <a href="{dashboard_url}">dashboard</a>.
    </p>

    <p style="font-size: 12px; color: #9ca3af; margin-top: 20px;">
      <strong>Disclaimer:</strong> This information is for informational purposes only
      and should not be considered as financial advice. Always do your own research
      before making investment decisions.
    </p>
  </div>
</body>
</html>
"""
