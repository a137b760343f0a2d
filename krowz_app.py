"""
# Krowz Site Application Module

This module contains the Flask application serving the Krowz marketing site.
It is organised into clearly separated sections covering configuration,
collaborator lookup, landing page and contact routes, and the staff
redemption verifier.  Environment variables are loaded at start-up so
deployments (local, Raspberry Pi style hosts or Vercel) can be configured
without modifying the source code.

The business logic lives in :mod:`krowz_contact` and :mod:`krowz_redemption`;
the routes here only translate HTTP requests into calls on those helpers.
"""

import os
import logging
from datetime import date

from flask import (
    Flask,
    render_template,
    request,
    jsonify,
)
from flask_wtf import CSRFProtect
from flask_wtf.csrf import CSRFError
from dotenv import load_dotenv

from krowz_contact import (
    CONTACT_TYPES,
    DEFAULT_CONTACT_TO_EMAIL,
    ContactFormStatus,
    ResendMailer,
    relay_contact,
)
from krowz_redemption import (
    RedemptionState,
    SupabaseRedemptionGateway,
    redeem,
)

# Load environment variables from a local ``.env`` file if present.  This keeps
# secrets out of version control while allowing convenient configuration during
# development.
load_dotenv()

app = Flask(__name__)
# Use a secret key from the environment if available so deployments can set
# their own value. A hard-coded default keeps development setups simple.
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'change-this-secret-key')
# Collaborators are built lazily from the environment unless a caller (for
# example the test suite) places its own objects here.
app.config['CONTACT_MAILER'] = None
app.config['REDEMPTION_GATEWAY'] = None

# Configure basic logging so debugging information is printed to the
# terminal. The log level can be adjusted via the ``KROWZ_LOG_LEVEL``
# environment variable to aid troubleshooting in production.
logging.basicConfig(level=os.environ.get("KROWZ_LOG_LEVEL", "INFO"))

# Enable CSRF protection for the HTML forms using Flask-WTF.  The JSON
# contact endpoint is exempted below because it is called with ``fetch``.
csrf = CSRFProtect(app)

CONTACT_EMAIL = DEFAULT_CONTACT_TO_EMAIL

# Copy for the contact card, keyed by the selected category
CONTACT_COPY = {
    'business': {
        'title': 'Contact',
        'desc': 'Business owner: send a message. We’ll reply fast.',
        'name_placeholder': 'Restaurant / owner name',
        'message_placeholder': 'Tell us about your business and what deal you’d like to offer...',
        'submit': 'Send partnership request',
    },
    'user': {
        'title': 'Contact',
        'desc': 'User: send feedback or report an issue. We’ll reply fast.',
        'name_placeholder': 'Your name',
        'message_placeholder': 'Tell us your feedback (or what went wrong) and we’ll fix it...',
        'submit': 'Send feedback',
    },
}

STEPS = [
    {'number': '01', 'title': 'Pick a deal', 'text': 'Restaurants & cafés', 'image': 'app/pick-a-deal.svg'},
    {'number': '02', 'title': 'Show QR', 'text': 'Customer present', 'image': 'app/show-qr.svg'},
    {'number': '03', 'title': 'Staff scans', 'text': 'Instant verify', 'image': 'app/staff-verify.svg'},
]

# Every method except POST is answered with a JSON 405 on the relay.  Listing
# OPTIONS explicitly stops Flask from answering it automatically.
CONTACT_API_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']


# ----------------------------
# Collaborators
# ----------------------------
def get_mailer():
    """Return the configured contact mailer, building the Resend one if unset."""
    mailer = app.config.get('CONTACT_MAILER')
    if mailer is None:
        # Built per call so key rotations in the environment apply immediately
        mailer = ResendMailer.from_env()
    return mailer


def get_redemption_gateway():
    """Retrieve the redemption gateway, creating the Supabase one if missing."""
    gateway = app.config.get('REDEMPTION_GATEWAY')
    if gateway is None:
        gateway = SupabaseRedemptionGateway.from_env()
        app.config['REDEMPTION_GATEWAY'] = gateway
    return gateway


def normalize_contact_type(value: str | None) -> str:
    """Return a known contact category, defaulting to ``business``."""
    return value if value in CONTACT_TYPES else 'business'


def render_landing(status: ContactFormStatus = ContactFormStatus.IDLE,
                   form: dict | None = None, contact_type: str | None = None):
    """Render the landing page with the contact card in the given state."""
    form = form or {}
    contact_type = normalize_contact_type(contact_type or form.get('type'))
    return render_template(
        'index.html',
        status=status.value,
        form=form,
        contact_type=contact_type,
        copy=CONTACT_COPY[contact_type],
        all_copy=CONTACT_COPY,
        contact_types=CONTACT_TYPES,
        contact_email=CONTACT_EMAIL,
        steps=STEPS,
        current_year=date.today().year,
    )


@app.context_processor
def inject_brand():
    """Make the brand name available to every template."""
    return {'brand': 'Krowz'}


# ----------------------------
# Response headers
# ----------------------------
@app.after_request
def protect_redemption_pages(response):
    """Keep single-use redemption pages out of caches and search engines."""
    if request.path == '/r' or request.path.startswith('/r/'):
        response.headers['X-Robots-Tag'] = 'noindex, nofollow'
        response.headers['Cache-Control'] = 'no-store'
    return response


# ----------------------------
# Error handlers
# ----------------------------
@app.errorhandler(404)
def not_found(error):
    """Render JSON for API paths and a small page elsewhere."""
    if request.path.startswith('/api/'):
        return jsonify({'error': 'Not found'}), 404
    return render_template('not_found.html'), 404


@app.errorhandler(405)
def method_not_allowed(error):
    """Answer disallowed methods with the same body as the contact relay."""
    if request.path.startswith('/api/'):
        return jsonify({'error': 'Method not allowed'}), 405
    return error


@app.errorhandler(CSRFError)
def csrf_failed(error):
    """Keep expired or missing form tokens inside the page's own states."""
    app.logger.warning("CSRF check failed on %s: %s", request.path, error.description)
    if request.endpoint == 'redeem_page':
        # The remote procedure was not called; staff must reload and retry
        token = (request.view_args or {}).get('token', '')
        return render_template(
            'redeem.html',
            token=token,
            state=RedemptionState.denied('server_error'),
            notice='This page expired. Reload it before redeeming again.',
        ), 400
    if request.endpoint == 'contact_form':
        form = {field: request.form.get(field, '') for field in ('type', 'name', 'email', 'message')}
        return render_landing(ContactFormStatus.ERROR, form), 400
    return error


# ----------------------------
# Landing page and contact relay
# ----------------------------
@app.route('/')
def index():
    """Show the landing page; ``?type=user`` preselects the feedback form."""
    return render_landing(contact_type=request.args.get('type'))


@app.route('/contact', methods=['POST'])
def contact_form():
    """HTML fallback for the contact card when JavaScript is unavailable."""
    form = {field: request.form.get(field, '') for field in ('type', 'name', 'email', 'message')}
    status_code, body = relay_contact(form, get_mailer())
    if status_code == 200:
        app.logger.info("Contact form relayed for %s", form['type'])
        # Clear the fields once the message is on its way
        cleared = {'type': form['type']}
        return render_landing(ContactFormStatus.SENT, cleared)
    app.logger.warning("Contact form failed: %s", body.get('error'))
    return render_landing(ContactFormStatus.ERROR, form), status_code


@app.route('/api/contact', methods=CONTACT_API_METHODS)
@csrf.exempt
def contact_api():
    """JSON contact relay used by the landing page script."""
    if request.method != 'POST':
        return jsonify({'error': 'Method not allowed'}), 405
    payload = request.get_json(silent=True)
    status_code, body = relay_contact(payload, get_mailer())
    return jsonify(body), status_code


# ----------------------------
# Redemption verifier
# ----------------------------
@app.route('/r/', defaults={'token': ''}, methods=['GET', 'POST'])
@app.route('/r/<token>', methods=['GET', 'POST'])
def redeem_page(token: str):
    """Show the verifier for ``token`` and record a redemption on POST."""
    state = RedemptionState.idle()
    if request.method == 'POST':
        # An empty token never reaches the remote procedure
        if token:
            state = redeem(get_redemption_gateway(), token)
            app.logger.info("Redemption attempt resolved as %s", state.phase.value)
    return render_template('redeem.html', token=token, state=state)


if __name__ == '__main__':
    # Run the Flask development server
    app.run(debug=True)
