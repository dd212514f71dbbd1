import os
from typing import Dict, Optional

from dotenv import load_dotenv
from flask import (
    Flask,
    g,
    redirect,
    render_template,
    request,
    send_from_directory,
    session,
    url_for,
)
from flask_pymongo import PyMongo
from pymongo.errors import PyMongoError
from werkzeug.middleware.proxy_fix import ProxyFix

from . import store
from .auth import (
    admin_required,
    check_password,
    generate_otp_code,
    hash_password,
    login_required,
)
from .mailer import send_otp_email
from .models import (
    ADMIN_ROLE,
    DEFAULT_ROLE,
    default_site_config,
    new_product_document,
    new_user_document,
    normalize_email,
    parse_price,
    parse_stock,
)
from .payments import build_payment_qr
from .results import UNAVAILABLE, Failure, validation_failure
from .uploads import remove_product_image, save_product_image
from .views import render_failure, render_server_error

load_dotenv()


def create_app(test_config: Optional[Dict] = None, database=None) -> Flask:
    """Create and configure the storefront application.

    ``database`` replaces the Flask-PyMongo handle, which lets tests run
    against an in-memory database.
    """
    app = Flask(__name__)

    trusted_proxy_hops_raw = os.getenv("TRUSTED_PROXY_HOPS", "1")
    try:
        trusted_proxy_hops = max(0, int(trusted_proxy_hops_raw))
    except (TypeError, ValueError):
        trusted_proxy_hops = 1
    if trusted_proxy_hops:
        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=trusted_proxy_hops,
            x_proto=trusted_proxy_hops,
            x_host=trusted_proxy_hops,
        )

    # --- Configuration ---
    app.config["SECRET_KEY"] = os.getenv("SESSION_SECRET", "change-me-in-production")
    app.config["MONGO_URI"] = os.getenv(
        "MONGO_URI", "mongodb://localhost:27017/anyoutlet"
    )
    max_upload_mb = int(os.getenv("MAX_UPLOAD_SIZE_MB", "16"))
    app.config["MAX_CONTENT_LENGTH"] = max_upload_mb * 1024 * 1024
    app.config["PRODUCT_UPLOAD_FOLDER"] = os.path.join(app.root_path, "uploads")
    app.config["PRODUCT_ALLOWED_EXTENSIONS"] = {"png", "jpg", "jpeg", "gif", "webp"}
    app.config["RESEND_API_KEY"] = (os.getenv("RESEND_API_KEY") or "").strip()
    app.config["OTP_SENDER_EMAIL"] = (
        os.getenv("OTP_SENDER_EMAIL", "verification@anyoutlet.shop")
        or "verification@anyoutlet.shop"
    )
    app.config["DEFAULT_ADMIN_EMAIL"] = normalize_email(
        os.getenv("DEFAULT_ADMIN_EMAIL", "")
    )

    if test_config:
        app.config.update(test_config)

    os.makedirs(app.config["PRODUCT_UPLOAD_FOLDER"], exist_ok=True)

    # --- Database ---
    if database is None:
        mongo = PyMongo(app)
        database = mongo.db
    db = database

    try:
        store.ensure_indexes(db)
        store.get_or_create_site_config(db)
    except PyMongoError as exc:
        app.logger.warning("Unable to prepare the database at startup: %s", exc)

    # --- Request state ---

    @app.before_request
    def load_request_state():
        g.user = None
        user_id = session.get("user_id")
        if user_id:
            g.user = store.find_user_by_id(db, user_id)
            if g.user is None:
                session.pop("user_id", None)
        g.site_config = store.get_or_create_site_config(db)

    @app.context_processor
    def inject_storefront_context():
        return {
            "current_user": g.get("user"),
            "site_config": g.get("site_config") or default_site_config(),
        }

    def shop_name() -> str:
        site_config = g.get("site_config") or default_site_config()
        return site_config.get("shop_name") or default_site_config()["shop_name"]

    def upload_folder() -> str:
        return app.config["PRODUCT_UPLOAD_FOLDER"]

    # --- Error handlers ---

    @app.errorhandler(PyMongoError)
    def handle_database_error(exc):
        app.logger.exception(
            "Database error during %s %s: %s", request.method, request.path, exc
        )
        return render_server_error(
            "Our store is temporarily unavailable. Please try again shortly."
        )

    @app.errorhandler(500)
    def handle_internal_error(exc):
        return render_server_error()

    # --- ROUTES ---

    @app.route("/health")
    def health():
        return {"status": "ok"}, 200

    @app.route("/uploads/<path:filename>")
    def serve_uploaded_file(filename: str):
        return send_from_directory(upload_folder(), filename)

    @app.route("/")
    def index():
        products = store.list_products(db)
        return render_template("index.html", products=products)

    @app.route("/contact")
    def contact():
        return render_template("contact.html")

    # Auth
    @app.route("/login", methods=["GET", "POST"])
    def login():
        if request.method == "GET":
            return render_template("login.html")

        email = normalize_email(request.form.get("email"))
        password = str(request.form.get("password", ""))

        user = store.find_user_by_email(db, email)
        if not user or not user.get("is_verified"):
            return render_failure(
                validation_failure("User not found or unverified"),
                "login.html",
                email=email,
            )

        if not check_password(password, user.get("password")):
            return render_failure(
                validation_failure("Wrong password"), "login.html", email=email
            )

        session.clear()
        session["user_id"] = str(user["_id"])
        app.logger.info("User %s signed in", email)
        return redirect(url_for("index"))

    @app.route("/signup", methods=["GET", "POST"])
    def signup():
        if request.method == "GET":
            return render_template("signup.html")

        name = str(request.form.get("name", "")).strip()
        email = normalize_email(request.form.get("email"))
        password = str(request.form.get("password", ""))
        confirm_password = str(request.form.get("confirm_password", ""))

        def fail(message: str):
            return render_failure(
                validation_failure(message), "signup.html", name=name, email=email
            )

        if not name or not email or not password:
            return fail("Name, email, and password are required.")

        if password != confirm_password:
            return fail("Passwords do not match")

        if store.find_user_by_email(db, email):
            return fail("Email already exists")

        otp = generate_otp_code()
        default_admin_email = app.config.get("DEFAULT_ADMIN_EMAIL")
        role = ADMIN_ROLE if default_admin_email and email == default_admin_email else DEFAULT_ROLE
        user_document = new_user_document(
            name, email, hash_password(password), otp, role=role
        )

        user_id, failure = store.insert_user(db, user_document)
        if failure:
            return render_failure(failure, "signup.html", name=name, email=email)

        sent, error_details = send_otp_email(email, otp, shop_name())
        if not sent:
            store.delete_user(db, user_id)
            app.logger.error(
                "OTP dispatch failed for %s: %s",
                email,
                error_details or "Unknown Resend error",
            )
            return render_failure(
                Failure(
                    UNAVAILABLE,
                    "We could not send the verification email. Please try again in a moment.",
                )
            )

        app.logger.info("Registered %s, awaiting OTP verification", email)
        session["temp_email"] = email
        return redirect(url_for("verify_otp"))

    @app.route("/verify-otp", methods=["GET", "POST"])
    def verify_otp():
        email = session.get("temp_email")
        if request.method == "GET":
            return render_template("verify_otp.html", email=email)

        otp = str(request.form.get("otp", "")).strip()
        if not store.confirm_user_otp(db, email, otp):
            return render_failure(
                validation_failure("Invalid OTP"), "verify_otp.html", email=email
            )

        session.pop("temp_email", None)
        app.logger.info("Verified email %s", email)
        return redirect(url_for("login"))

    @app.route("/logout")
    def logout():
        session.clear()
        return redirect(url_for("index"))

    # Checkout
    @app.route("/checkout/<product_id>")
    @login_required
    def checkout(product_id: str):
        product, failure = store.find_product_in_stock(db, product_id)
        if failure:
            return render_failure(failure)
        return render_template("checkout.html", product=product)

    @app.route("/process-checkout", methods=["POST"])
    @login_required
    def process_checkout():
        product_id = str(request.form.get("product_id", "")).strip()
        address = str(request.form.get("address", "")).strip()
        phone = str(request.form.get("phone", "")).strip()

        product, failure = store.find_product_in_stock(db, product_id)
        if failure:
            return render_failure(failure)

        if not phone:
            return render_failure(
                validation_failure("A phone number is required."),
                "checkout.html",
                product=product,
                address=address,
            )

        qr_image = build_payment_qr(phone, product.get("sale_price") or 0)

        product, failure = store.reserve_product_unit(db, product_id)
        if failure:
            return render_failure(failure)

        app.logger.info(
            "Checkout by %s reserved one unit of %s, %s left",
            g.user.get("email"),
            product_id,
            product.get("stock"),
        )
        return render_template(
            "payment.html", product=product, qr_image=qr_image, address=address
        )

    # --- Admin Routes ---

    @app.route("/admin")
    @login_required
    @admin_required
    def admin_dashboard():
        users = store.list_users(db)
        return render_template("admin/dashboard.html", users=users)

    @app.route("/admin/product", methods=["POST"])
    @login_required
    @admin_required
    def admin_create_product():
        form = request.form
        name = str(form.get("name", "")).strip()
        description = str(form.get("description", "")).strip()

        if not name:
            return render_failure(validation_failure("A product name is required."))

        real_price = parse_price(form.get("real_price"))
        sale_price = parse_price(form.get("sale_price"))
        if real_price is None or sale_price is None:
            return render_failure(
                validation_failure("Prices must be valid non-negative numbers.")
            )

        stock = parse_stock(form.get("stock"))
        if stock is None:
            return render_failure(validation_failure("Stock must be a whole number."))

        filename, image_failure = save_product_image(
            request.files.get("image"),
            upload_folder(),
            app.config["PRODUCT_ALLOWED_EXTENSIONS"],
        )
        if image_failure:
            return render_failure(image_failure)

        product_document = new_product_document(
            name, description, real_price, sale_price, stock, image=filename
        )
        try:
            product_id = store.insert_product(db, product_document)
        except PyMongoError:
            remove_product_image(filename, upload_folder())
            raise

        app.logger.info(
            "Admin %s created product %s (%s)", g.user.get("email"), product_id, name
        )
        return redirect(url_for("admin_dashboard"))

    @app.route("/admin/promote/<user_id>", methods=["POST"])
    @login_required
    @admin_required
    def admin_promote_user(user_id: str):
        promoted, failure = store.promote_user(db, user_id)
        if failure:
            return render_failure(failure)
        if not promoted:
            app.logger.warning("Promotion requested for unknown user %s", user_id)
        return redirect(url_for("admin_dashboard"))

    @app.route("/admin/settings", methods=["POST"])
    @login_required
    @admin_required
    def admin_update_settings():
        store.update_site_config(db, request.form.to_dict())
        app.logger.info("Admin %s updated site settings", g.user.get("email"))
        return redirect(url_for("admin_dashboard"))

    return app
