import logging
from flask import Flask, Response, request, jsonify, current_app
from flask_cors import CORS

from affectly.config import Config
from affectly.errors import AffectlyError, ValidationError
from affectly.models import db, utcnow
from affectly.store import EntryStore
from affectly.entitlements import visible_features
from affectly.journal_service import JournalService
from affectly.payments import PaymentWorkflow
from affectly.paystack_service import PaystackClient
from affectly.sentiment_service import SentimentClassifier

logger = logging.getLogger(__name__)


def create_app(overrides=None, classifier=None, gateway=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    app.config.update(overrides or {})

    # Init DB
    db.init_app(app)
    with app.app_context():
        db.create_all()

    # --- CORS (allow the deployed frontend origin if provided) ---
    frontend_origin = app.config.get("FRONTEND_ORIGIN")
    if frontend_origin:
        CORS(app, resources={r"/*": {"origins": [frontend_origin]}})
    else:
        CORS(app)

    store = EntryStore(db)
    gateway = gateway or PaystackClient(
        secret_key=app.config["PAYSTACK_SECRET_KEY"],
        base_url=app.config["PAYSTACK_BASE_URL"],
        timeout=app.config["PAYSTACK_TIMEOUT"],
    )
    app.extensions["affectly"] = {
        "store": store,
        "journal": JournalService(
            store,
            classifier or SentimentClassifier(),
            day_offset_minutes=app.config["DAY_OFFSET_MINUTES"],
        ),
        "payments": PaymentWorkflow(store, gateway, currency=app.config["PAYMENT_CURRENCY"]),
    }

    register_routes(app)
    return app


def _service(name):
    return current_app.extensions["affectly"][name]


def _user_id():
    # Set by the auth proxy in front of this service
    user_id = request.headers.get("X-User-Id", "").strip()
    if not user_id:
        raise ValidationError("Missing X-User-Id header")
    return user_id


def _body():
    return request.get_json(silent=True) or {}


def register_routes(app):

    @app.errorhandler(AffectlyError)
    def handle_affectly_error(err):
        return jsonify(err.to_dict()), err.status_code

    @app.route("/health")
    def health():
        """Simple health check + DB connectivity test."""
        db_ok = True
        try:
            with db.engine.connect() as conn:
                conn.execute(db.text("SELECT 1"))
        except Exception as e:
            logger.error(f"Health check DB error: {e}")
            db_ok = False
        return jsonify({
            "ok": True,
            "db_ok": db_ok,
            "time": utcnow().isoformat() + "Z"
        }), 200

    # ---------- Profile ----------

    @app.route("/profile", methods=["POST"])
    def create_profile():
        """Sign-up hook: every new account starts on the free tier."""
        data = _body()
        email = (data.get("email") or "").strip()
        if not email:
            raise ValidationError("Missing 'email'")
        profile = _service("store").create_profile(_user_id(), email, data.get("fullName"))
        return jsonify(profile.to_dict()), 201

    @app.route("/profile", methods=["GET"])
    def get_profile():
        return jsonify(_service("store").get_profile(_user_id()).to_dict()), 200

    @app.route("/profile", methods=["PATCH"])
    def update_profile():
        profile = _service("journal").update_profile(_user_id(), _body().get("fullName"))
        return jsonify(profile.to_dict()), 200

    @app.route("/features")
    def features():
        return jsonify(_service("journal").features(_user_id())), 200

    # ---------- Journal ----------

    @app.route("/journal", methods=["POST"])
    def handle_journal():
        """Create one journal entry: quota check + sentiment + save."""
        user_id = _user_id()
        entry = _service("journal").create_entry(user_id, _body().get("content"))
        return jsonify(entry.to_dict()), 201

    @app.route("/entries", methods=["GET"])
    def list_entries():
        """List saved entries (latest first) at the caller's emotion detail."""
        user_id = _user_id()
        detail = visible_features(_service("store").get_profile(user_id)).emotion_detail
        items = _service("journal").list_entries(user_id, limit=request.args.get("limit", type=int))
        return jsonify([it.to_dict(emotion_detail=detail) for it in items]), 200

    # ---------- Dashboard ----------

    @app.route("/dashboard")
    def dashboard():
        return jsonify(_service("journal").get_dashboard_stats(_user_id())), 200

    @app.route("/dashboard/mood-trend")
    def mood_trend():
        return jsonify(_service("journal").get_mood_trend(_user_id()).to_list()), 200

    @app.route("/dashboard/emotions")
    def emotions():
        distribution = _service("journal").get_emotion_distribution(_user_id())
        return jsonify([{"label": e.label, "count": e.count} for e in distribution]), 200

    @app.route("/export.csv")
    def export_csv():
        content = _service("journal").export_csv(_user_id())
        return Response(
            content,
            mimetype="text/csv",
            headers={"Content-Disposition": "attachment; filename=affectly-journal-data.csv"},
        )

    # ---------- Payments ----------

    @app.route("/payments/initialize", methods=["POST"])
    def initialize_payment():
        profile = _service("store").get_profile(_user_id())
        data = _body()
        callback_url = data.get("callbackUrl") or (
            f"{current_app.config.get('FRONTEND_ORIGIN', '')}/settings?payment=success"
        )
        txn = _service("payments").initiate(
            profile.email,
            current_app.config["PREMIUM_PRICE_KES"],
            callback_url,
        )
        return jsonify({
            "success": True,
            "reference": txn.reference,
            "authorizationUrl": txn.authorization_url,
            "accessCode": txn.access_code,
        }), 200

    @app.route("/payments/verify", methods=["POST"])
    def verify_payment():
        reference = (_body().get("reference") or "").strip()
        if not reference:
            raise ValidationError("Missing 'reference'")
        result = _service("payments").verify(reference)
        return jsonify({
            "success": True,
            "message": "Payment verified and subscription updated",
            "alreadyVerified": result.already_verified,
            "subscriptionEnd": result.subscription_end.isoformat() + "Z" if result.subscription_end else None,
        }), 200

    @app.route("/payments/<reference>/status")
    def payment_status(reference):
        state = _service("payments").status(reference)
        return jsonify({"reference": reference, "state": state.value}), 200


if __name__ == "__main__":
    Config.validate()
    app = create_app()
    app.run(
        host="0.0.0.0",
        port=Config.PORT,
        debug=True
    )
