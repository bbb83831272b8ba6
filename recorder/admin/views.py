"""
views.py — HTML for the admin landing page and the replay view.

The replay view is the boundary to the replay engine (rrweb-player): it hands
over the ordered event log plus target dimensions and nothing else. The
landing page pages through GET /api/sessions client-side.
"""
import html
import json

from recorder.admin.schemas import SessionDetail

REFRESH_INTERVAL_MS = 30000

_STYLE = """
body { font-family: Arial, sans-serif; margin: 20px; background: #f5f5f5; }
.container { max-width: 1200px; margin: 0 auto; background: white; padding: 20px; border-radius: 8px; }
.sessions-table { width: 100%; border-collapse: collapse; margin-top: 20px; }
.sessions-table th, .sessions-table td { padding: 12px; text-align: left; border-bottom: 1px solid #ddd; }
.sessions-table th { background-color: #007cba; color: white; }
.user-agent { max-width: 300px; overflow: hidden; text-overflow: ellipsis; white-space: nowrap; color: #666; }
.pagination { margin: 20px 0; text-align: center; }
.pagination a, .pagination span { margin: 0 5px; padding: 8px 12px; border: 1px solid #ddd; }
.pagination .current { background-color: #007cba; color: white; }
.error { color: #d32f2f; text-align: center; padding: 20px; }
"""

_ADMIN_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>Session Recorder Admin</title>
<style>{style}</style>
</head>
<body>
<div class="container">
  <h1>Session Recorder Admin</h1>
  <div id="stats"></div>
  <div id="content">Loading sessions...</div>
</div>
<script>
let currentPage = 1;
function esc(s) {{
  return String(s).replace(/[&<>"']/g, c => ({{'&':'&amp;','<':'&lt;','>':'&gt;','"':'&quot;',"'":'&#39;'}}[c]));
}}
async function loadSessions(page) {{
  try {{
    const response = await fetch('/api/sessions?page=' + page);
    const data = await response.json();
    currentPage = data.page;
    render(data);
  }} catch (error) {{
    document.getElementById('content').innerHTML = '<div class="error">Failed to load sessions: ' + esc(error.message) + '</div>';
  }}
}}
function render(data) {{
  document.getElementById('stats').innerHTML =
    '<strong>' + data.total + '</strong> sessions | page <strong>' + data.page + '</strong> of <strong>' + data.pages + '</strong>';
  if (data.sessions.length === 0) {{
    document.getElementById('content').innerHTML = '<div class="error">No sessions found.</div>';
    return;
  }}
  let rows = data.sessions.map(s =>
    '<tr><td>' + esc(s.sessionId) + '</td><td>' + esc(s.url) + '</td><td>' + esc(s.title) + '</td>' +
    '<td>' + new Date(s.createdAt).toLocaleString() + '</td><td>' + s.eventCount + '</td>' +
    '<td class="user-agent">' + esc(s.userAgent) + '</td>' +
    '<td><a href="/session/' + encodeURIComponent(s.sessionId) + '" target="_blank">Replay</a></td></tr>'
  ).join('');
  let pager = '';
  if (data.page > 1) pager += '<a href="#" onclick="loadSessions(' + (data.page - 1) + ')">&larr; Previous</a>';
  for (let i = Math.max(1, data.page - 2); i <= Math.min(data.pages, data.page + 2); i++) {{
    pager += i === data.page ? '<span class="current">' + i + '</span>' : '<a href="#" onclick="loadSessions(' + i + ')">' + i + '</a>';
  }}
  if (data.page < data.pages) pager += '<a href="#" onclick="loadSessions(' + (data.page + 1) + ')">Next &rarr;</a>';
  document.getElementById('content').innerHTML =
    '<table class="sessions-table"><thead><tr><th>Session ID</th><th>URL</th><th>Title</th><th>Started</th>' +
    '<th>Events</th><th>User agent</th><th></th></tr></thead><tbody>' + rows + '</tbody></table>' +
    '<div class="pagination">' + pager + '</div>';
}}
loadSessions(1);
setInterval(() => loadSessions(currentPage), {refresh_ms});
</script>
</body>
</html>
"""

_REPLAY_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>Session Replay: {title}</title>
<link rel="stylesheet" href="/rrweb-player.css">
<style>
body {{ font-family: Arial, sans-serif; margin: 0; background: #1a1a1a; color: white; }}
.session-info {{ background: #222; padding: 10px 15px; font-size: 14px; }}
.session-info span {{ margin-right: 20px; }}
#player {{ width: 100%; height: calc(100vh - 60px); }}
.error {{ color: #f44336; text-align: center; padding: 20px; }}
</style>
<script src="/{rrweb_js}"></script>
<script src="/rrweb-player.js"></script>
</head>
<body>
<div class="session-info">
  <span><strong>URL:</strong> <a href="{url}" target="_blank" style="color: #007cba;">{url}</a></span>
  <span><strong>Title:</strong> {title}</span>
  <span><strong>Started:</strong> {created_at}</span>
</div>
<div id="player"></div>
<script id="session-events" type="application/json">{events_json}</script>
<script>
document.addEventListener('DOMContentLoaded', function () {{
  const events = JSON.parse(document.getElementById('session-events').textContent);
  const target = document.getElementById('player');
  if (!Array.isArray(events) || events.length === 0) {{
    target.innerHTML = '<div class="error">No recording data available.</div>';
    return;
  }}
  new rrwebPlayer({{
    target: target,
    props: {{
      events: events,
      width: window.innerWidth,
      height: window.innerHeight - 60,
      autoPlay: false,
      showController: true,
      skipInactive: true
    }}
  }});
}});
</script>
</body>
</html>
"""


def embed_json(value) -> str:
    """JSON for a <script type="application/json"> block; '</' cannot close the tag."""
    return json.dumps(value, separators=(",", ":")).replace("</", "<\\/")


def render_admin_page() -> str:
    return _ADMIN_TEMPLATE.format(style=_STYLE, refresh_ms=REFRESH_INTERVAL_MS)


def render_replay_page(detail: SessionDetail, rrweb_js_name: str) -> str:
    return _REPLAY_TEMPLATE.format(
        title=html.escape(detail.title),
        url=html.escape(detail.url),
        created_at=html.escape(detail.created_at.strftime("%d.%m.%Y %H:%M:%S")),
        rrweb_js=html.escape(rrweb_js_name),
        events_json=embed_json(detail.events),
    )
