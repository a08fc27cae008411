"""Development runner.
Usage: python run.py  (reads .env if present)
Set DEV_CREATE_ALL=1 to create the menus table on startup (development only).
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

from menustore import create_app

load_dotenv()

app = create_app({"CREATE_ALL": os.getenv("DEV_CREATE_ALL", "0").lower() in ("1", "true", "yes")})

if __name__ == "__main__":  # pragma: no cover
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "5000"))
    app.run(debug=True, host=host, port=port)
