"""HTML templates for the OAuth consent flow.

Theme colors:
- Background: #FAF9F7 (warm cream)
- Primary: #D97756 (terracotta)
- Primary hover: #C4684A
- Text: #1A1915 (dark charcoal)
- Secondary text: #6B6860
- Border: #E5E4E0, #D9D8D4
"""

from html import escape


CONSENT_PAGE = """
<!DOCTYPE html>
<html>
<head>
    <title>Authorize - {server_name}</title>
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <style>
        body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
               background: #FAF9F7;
               min-height: 100vh; display: flex; align-items: center; justify-content: center; margin: 0; }}
        .container {{ background: white; padding: 40px; border-radius: 16px; box-shadow: 0 4px 24px rgba(0,0,0,0.08);
                     width: 100%; max-width: 480px; border: 1px solid #E5E4E0; }}
        h1 {{ margin: 0 0 8px; color: #1A1915; font-size: 24px; font-weight: 600; }}
        h3 {{ margin: 20px 0 8px; color: #1A1915; font-size: 15px; font-weight: 600; }}
        .app-info {{ display: flex; align-items: center; gap: 15px; padding: 20px; background: #F5F5F0;
                    border-radius: 8px; margin: 20px 0; }}
        .app-icon {{ width: 50px; height: 50px; background: #D97756; border-radius: 10px;
                    display: flex; align-items: center; justify-content: center; color: white; font-size: 24px; font-weight: 600; }}
        .app-name {{ font-weight: 600; color: #1A1915; }}
        .client-id {{ font-family: monospace; font-size: 13px; color: #6B6860; word-break: break-all; }}
        ul {{ margin: 0; padding-left: 20px; color: #6B6860; font-size: 14px; }}
        .buttons {{ display: flex; gap: 12px; margin-top: 28px; }}
        button {{ flex: 1; padding: 14px; border-radius: 8px; font-size: 15px; font-weight: 600; cursor: pointer; transition: all 0.2s; }}
        .allow {{ background: #D97756; color: white; border: none; }}
        .deny {{ background: white; color: #6B6860; border: 1px solid #D9D8D4; }}
        .allow:hover {{ background: #C4684A; }}
        .deny:hover {{ background: #F5F5F0; }}
    </style>
</head>
<body>
    <div class="container">
        <h1>Authorize Access</h1>
        <div class="app-info">
            <div class="app-icon">M</div>
            <div>
                <div class="app-name">{client_name}</div>
                <div class="client-id">{client_id}</div>
                <div style="color: #6B6860; font-size: 14px;">wants to access {server_name}</div>
            </div>
        </div>
        <h3>Requested Permissions</h3>
        <ul>{scopes}</ul>
        <h3>Redirect URIs</h3>
        <ul>{redirect_uris}</ul>
        <form method="POST" action="/authorize">
{hidden_fields}
            <div class="buttons">
                <button type="submit" name="action" value="deny" class="deny">Deny</button>
                <button type="submit" name="action" value="approve" class="allow">Authorize</button>
            </div>
        </form>
    </div>
</body>
</html>
"""


def _list_items(values, empty: str) -> str:
    if not values:
        return f"<li>{escape(empty)}</li>"
    return "".join(f"<li>{escape(v)}</li>" for v in values)


def render_consent_page(
    server_name: str,
    client_id: str,
    client_name: str,
    redirect_uris: list,
    scope: str,
    params: dict,
) -> str:
    """Render the approval dialog, round-tripping the authorize params as hidden fields."""
    hidden_fields = "\n".join(
        f'            <input type="hidden" name="{escape(name)}" value="{escape(value)}">'
        for name, value in params.items()
        if value
    )
    return CONSENT_PAGE.format(
        server_name=escape(server_name),
        client_id=escape(client_id),
        client_name=escape(client_name or "Unknown Application"),
        scopes=_list_items(scope.split() if scope else [], "No specific scopes requested"),
        redirect_uris=_list_items(redirect_uris, "No redirect URIs registered"),
        hidden_fields=hidden_fields,
    )
