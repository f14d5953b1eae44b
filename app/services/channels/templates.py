"""Message formatting for each delivery channel."""

from datetime import datetime
from html import escape

from app.config import settings
from app.models.domain.contest_domain import Contest, ensure_utc
from app.models.domain.notification_domain import NotificationPayload

PLATFORM_COLORS = {
    "codeforces": "#1F8ACB",
    "leetcode": "#FFA116",
    "codechef": "#5B4638",
    "atcoder": "#000000",
}


def _format_start(value: datetime) -> str:
    return ensure_utc(value).strftime("%a, %d %b %Y %H:%M UTC")


def preferences_url() -> str:
    return f"{settings.APP_BASE_URL.rstrip('/')}/dashboard/profile"


def reminder_title(payload: NotificationPayload) -> str:
    return f"Contest Alert: {payload.contest_name}"


def reminder_message(payload: NotificationPayload) -> str:
    return (
        f"{payload.contest_name} on {payload.platform} starts in "
        f"{payload.hours_until_start} hours ({_format_start(payload.start_time)})"
    )


def format_email_subject(payload: NotificationPayload) -> str:
    return reminder_title(payload)


def format_email_html(payload: NotificationPayload) -> str:
    color = PLATFORM_COLORS.get(payload.platform.lower(), "#6366f1")
    link = (
        f'<p><a href="{escape(payload.website_url)}" '
        f'style="color:{color};font-weight:600;">View contest</a></p>'
        if payload.website_url
        else ""
    )

    return f"""<!DOCTYPE html>
<html lang="en">
<body style="margin:0;padding:24px;background:#f8fafc;font-family:Helvetica,Arial,sans-serif;">
  <div style="max-width:600px;margin:0 auto;background:#ffffff;border:1px solid #e5e7eb;border-radius:10px;padding:24px;">
    <h1 style="margin:0 0 16px;font-size:20px;color:#111827;">{escape(payload.contest_name)}</h1>
    <p style="margin:0 0 8px;color:{color};font-weight:600;text-transform:uppercase;">{escape(payload.platform)}</p>
    <p style="margin:0 0 8px;color:#334155;"><strong>Starts:</strong> {_format_start(payload.start_time)}</p>
    <p style="margin:0 0 16px;color:#334155;"><strong>In:</strong> {payload.hours_until_start} hours</p>
    {link}
    <p style="margin:24px 0 0;font-size:12px;color:#94a3b8;">
      <a href="{preferences_url()}">Manage your notification preferences</a>
    </p>
  </div>
</body>
</html>"""


def format_whatsapp_message(payload: NotificationPayload) -> str:
    lines = [
        "*Contest Alert*",
        "",
        f"*{payload.contest_name}*",
        "",
        f"Platform: {payload.platform.upper()}",
        f"Starts in: *{payload.hours_until_start} hours*",
        f"Start time: {_format_start(payload.start_time)}",
    ]
    if payload.website_url:
        lines.append(payload.website_url)
    lines += ["", "Good luck!", "", f"Manage your preferences: {preferences_url()}"]
    return "\n".join(lines)


def format_push_notification(payload: NotificationPayload) -> dict:
    return {
        "notification": {
            "title": f"Contest Alert: {payload.platform.upper()}",
            "body": f"{payload.contest_name} starts in {payload.hours_until_start} hours",
        },
        "data": {
            "contestId": payload.contest_id or "",
            "platform": payload.platform,
            "startTime": ensure_utc(payload.start_time).isoformat(),
        },
    }


def digest_subject(frequency: str, count: int) -> str:
    label = "Daily" if frequency == "daily" else "Weekly"
    return f"{label} Contest Digest: {count} upcoming contest{'s' if count != 1 else ''}"


def format_digest_html(contests: list[Contest], frequency: str, now: datetime) -> str:
    timeframe = "today" if frequency == "daily" else "this week"
    items = []
    for contest in contests:
        color = PLATFORM_COLORS.get(contest.platform.value, "#6366f1")
        name = escape(contest.name)
        if contest.website_url:
            name = f'<a href="{escape(contest.website_url)}" style="color:#0f172a;">{name}</a>'
        items.append(
            f"""    <div style="padding:16px;border:1px solid #e2e8f0;border-radius:8px;margin-bottom:12px;">
      <div style="color:{color};font-weight:600;text-transform:uppercase;font-size:12px;">{contest.platform.value}</div>
      <h3 style="margin:8px 0;font-size:16px;">{name}</h3>
      <p style="margin:0;font-size:14px;color:#64748b;"><strong>Starts:</strong> {_format_start(contest.start_time)}
        (in {contest.hours_until_start(now)} hours)</p>
    </div>"""
        )

    return f"""<!DOCTYPE html>
<html lang="en">
<body style="margin:0;padding:24px;background:#f8fafc;font-family:Helvetica,Arial,sans-serif;">
  <div style="max-width:600px;margin:0 auto;background:#ffffff;border:1px solid #e5e7eb;border-radius:10px;padding:24px;">
    <h1 style="margin:0 0 16px;font-size:22px;color:#111827;">{digest_subject(frequency, len(contests))}</h1>
    <p style="margin:0 0 24px;color:#64748b;">Contests on your platforms starting {timeframe}:</p>
{chr(10).join(items)}
    <p style="margin:24px 0 0;font-size:12px;color:#94a3b8;">
      <a href="{preferences_url()}">Manage your notification preferences</a>
    </p>
  </div>
</body>
</html>"""
