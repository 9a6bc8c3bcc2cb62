# backend/wsgi.py
# FLASK_APP target for the CLI and the WSGI entry point for production servers.
import os

from stockledger import create_app

app = create_app()

if __name__ == "__main__":
    app.run(host="127.0.0.1", port=int(os.environ.get("PORT", "5001")))
