"""HTML pages for the browser half of the authorization flow.

Both are str.format templates; literal braces in CSS are doubled.
"""

_STYLE = """
        body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
               background: #FAF9F7;
               min-height: 100vh; display: flex; align-items: center; justify-content: center; margin: 0; }}
        .container {{ background: white; padding: 40px; border-radius: 16px; box-shadow: 0 4px 24px rgba(0,0,0,0.08);
                     width: 100%; max-width: 420px; border: 1px solid #E5E4E0; }}
        h1 {{ margin: 0 0 8px; color: #1A1915; font-size: 24px; font-weight: 600; }}
        p {{ color: #6B6860; margin: 0 0 24px; }}
        .form-group {{ margin-bottom: 20px; }}
        label {{ display: block; margin-bottom: 8px; color: #1A1915; font-weight: 500; font-size: 14px; }}
        input[type="text"], input[type="password"] {{
            width: 100%; padding: 12px 14px; border: 1px solid #D9D8D4; border-radius: 8px;
            font-size: 15px; box-sizing: border-box; background: #FAF9F7; }}
        input:focus {{ outline: none; border-color: #D97756; }}
        button {{ width: 100%; padding: 14px; background: #D97756;
                 color: white; border: none; border-radius: 8px; font-size: 15px; font-weight: 600;
                 cursor: pointer; }}
        button:hover {{ background: #C4684A; }}
        .error {{ background: #FEF2F2; color: #B91C1C; padding: 12px; border-radius: 8px; margin-bottom: 20px; border: 1px solid #FECACA; }}
        .info {{ background: #F5F5F0; color: #6B6860; padding: 12px; border-radius: 8px; margin-bottom: 20px; font-size: 14px; }}
"""

LOGIN_PAGE = """
<!DOCTYPE html>
<html>
<head>
    <title>Login</title>
    <style>""" + _STYLE + """    </style>
</head>
<body>
    <div class="container">
        <h1>Sign In</h1>
        <p>Sign in to authorize the requesting application</p>
        {error}
        <form method="POST" action="{login_path}">
            <div class="form-group">
                <label for="username">Username</label>
                <input type="text" id="username" name="username" required autofocus>
            </div>
            <div class="form-group">
                <label for="password">Password</label>
                <input type="password" id="password" name="password" required>
            </div>
            <button type="submit">Sign In</button>
        </form>
    </div>
</body>
</html>
"""

AUTH_PAGE = """
<!DOCTYPE html>
<html>
<head>
    <title>Authorize</title>
    <style>""" + _STYLE + """    </style>
</head>
<body>
    <div class="container">
        <h1>Authorize Access</h1>
        <div class="info">Signed in as: {user_id}</div>
        <p>The application will receive an access token for your account.</p>
        <form method="POST" action="{authorize_path}">
            <button type="submit">Allow</button>
        </form>
    </div>
</body>
</html>
"""

ERROR_PAGE = """
<!DOCTYPE html>
<html>
<head>
    <title>Error</title>
    <style>""" + _STYLE + """    </style>
</head>
<body>
    <div class="container">
        <h1>{title}</h1>
        <div class="error">{message}</div>
    </div>
</body>
</html>
"""
