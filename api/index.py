"""
# Krowz Vercel Entry Point

This module exposes the Flask application to Vercel's serverless Python
runtime.  Vercel routes every request here (see ``vercel.json``), including
the ``/api/contact`` relay and the ``/r/<token>`` staff verifier, so the file
only wraps the app for the proxy and re-exports it.
"""

from werkzeug.middleware.proxy_fix import ProxyFix

from krowz_app import app as flask_app

# Wrap the Flask WSGI app so URL generation (form actions, static assets)
# respects the forwarded scheme and host set by Vercel's edge.  The adjusted
# application is then re-exported using the ``app`` name required by the
# ``@vercel/python`` runtime.
flask_app.wsgi_app = ProxyFix(flask_app.wsgi_app, x_proto=1, x_host=1)
app = flask_app
