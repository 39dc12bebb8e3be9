"""
Entry point for Flask.

Usage (from project root):

    flask --app run.py --debug run

First-time setup:

    flask --app run.py db upgrade        # or db init/migrate on a fresh checkout
    flask --app run.py seed-admin --email admin@example.com
    flask --app run.py seed-settings
"""

from marketplace import create_app

app = create_app()

if __name__ == "__main__":
    # Dev only; use a WSGI server in production.
    app.run(debug=True)
