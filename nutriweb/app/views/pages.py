"""Marketing pages, plan details and crawler metadata."""
from __future__ import annotations

from datetime import date
from http import HTTPStatus

from flask import Blueprint, Response, current_app, render_template

from nutriweb.app.catalog import PLANS, SERVICES, find_plan
from nutriweb.app.services.api_client import get_api_client
from nutriweb.app.services.testimonials import get_public_testimonials

pages_bp = Blueprint("pages", __name__)

DISALLOWED_PATHS = ("/admin/", "/api/", "/test/")
SITEMAP_ROUTES = ("", "/services", "/login", "/register", "/profile", "/book")


@pages_bp.get("/")
def home() -> str:
    """Render the landing page; the testimonials section is omitted when empty."""

    testimonials = get_public_testimonials(get_api_client())
    return render_template("pages/home.html", services=SERVICES, testimonials=testimonials)


@pages_bp.get("/services")
def services() -> str:
    return render_template("pages/services.html", services=SERVICES, plans=PLANS)


@pages_bp.get("/explore-plans/<slug>")
def explore_plan(slug: str):
    plan = find_plan(slug)
    if plan is None:
        return render_template("pages/plan_not_found.html"), HTTPStatus.NOT_FOUND
    return render_template("pages/plan.html", plan=plan)


def _site_url() -> str:
    return current_app.config["SITE_URL"].rstrip("/")


@pages_bp.get("/robots.txt")
def robots() -> Response:
    lines = ["User-agent: *", "Allow: /"]
    lines.extend(f"Disallow: {path}" for path in DISALLOWED_PATHS)
    lines.append("")
    lines.append(f"Sitemap: {_site_url()}/sitemap.xml")
    return Response("\n".join(lines) + "\n", mimetype="text/plain")


@pages_bp.get("/sitemap.xml")
def sitemap() -> Response:
    base_url = _site_url()
    entries = [
        {
            "loc": f"{base_url}{route}",
            "lastmod": date.today().isoformat(),
            "changefreq": "weekly" if route == "" else "monthly",
            "priority": "1.0" if route == "" else "0.8",
        }
        for route in SITEMAP_ROUTES
    ]
    body = render_template("pages/sitemap.xml", entries=entries)
    return Response(body, mimetype="application/xml")
