from flask import Blueprint, render_template

bp = Blueprint("routes", __name__)

# Landing page sections; labels are looked up per locale in the template.
NAV_LINKS = (
    ("home", "/"),
    ("about", "/#about"),
    ("services", "/#services"),
    ("contact", "/#contact"),
)


@bp.get("/")
def index():
    return render_template("public/index.html", nav_links=NAV_LINKS)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """Fast health check for probes. No DB access."""
    return "ok", 200
