# kaizbot/transport/registration_page.py
"""Static HTML for GET /register (reference-code form)."""
from html import escape

_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{bot} - Complete registration</title>
<style>
  body {{ font-family: system-ui, sans-serif; background: #f4f6fb; margin: 0; }}
  main {{ max-width: 420px; margin: 10vh auto; background: #fff; padding: 2rem;
         border-radius: 12px; box-shadow: 0 4px 24px rgba(0, 0, 0, .08); }}
  h1 {{ font-size: 1.4rem; margin-top: 0; }}
  input {{ width: 100%; padding: .7rem; font-size: 1rem; box-sizing: border-box;
          border: 1px solid #ccd; border-radius: 8px; }}
  button {{ margin-top: 1rem; width: 100%; padding: .7rem; font-size: 1rem; border: 0;
           border-radius: 8px; background: #0866ff; color: #fff; cursor: pointer; }}
  #result {{ margin-top: 1rem; min-height: 1.5rem; }}
  .ok {{ color: #1a7f37; }}
  .err {{ color: #c62828; }}
</style>
</head>
<body>
<main>
  <h1>🤖 {bot}</h1>
  <p>Enter the reference code the bot sent you in Messenger
     (for example <code>#User1234-01234</code>).</p>
  <form id="register">
    <input id="code" name="reference_code" placeholder="#Name-00000" autocomplete="off" required>
    <button type="submit">Complete registration</button>
  </form>
  <p id="result"></p>
</main>
<script>
  const MESSAGES = {{
    400: "Please enter your reference code.",
    404: "Reference code not found, or registration already completed.",
    409: "Please accept the Terms of Service in Messenger first.",
  }};
  document.getElementById("register").addEventListener("submit", async (e) => {{
    e.preventDefault();
    const result = document.getElementById("result");
    const code = document.getElementById("code").value.trim();
    const resp = await fetch("/register/complete", {{
      method: "POST",
      headers: {{"Content-Type": "application/json"}},
      body: JSON.stringify({{reference_code: code}}),
    }});
    if (resp.ok) {{
      result.className = "ok";
      result.textContent = "✅ Registration complete! Check Messenger.";
    }} else {{
      result.className = "err";
      result.textContent = MESSAGES[resp.status] || "Something went wrong. Please try again later.";
    }}
  }});
</script>
</body>
</html>
"""


def render_registration_page(bot_name: str) -> str:
    return _TEMPLATE.format(bot=escape(bot_name))
