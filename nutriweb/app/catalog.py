"""Consultation services and plans shown on the marketing pages."""
from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Service:
    title: str
    slug: str
    description: str
    image: str
    fee: str


@dataclass(frozen=True)
class Package:
    slug: str
    name: str
    price: int
    duration: str
    features: tuple[str, ...] = ()

    @property
    def price_label(self) -> str:
        return f"₹{self.price:,}"


@dataclass(frozen=True)
class Plan:
    slug: str
    name: str
    long_description: str
    price: int | None = None
    duration: str = "40 min"
    features: tuple[str, ...] = ()
    packages: tuple[Package, ...] = field(default_factory=tuple)

    @property
    def price_label(self) -> str | None:
        return f"₹{self.price:,}" if self.price is not None else None


SERVICES: tuple[Service, ...] = (
    Service(
        title="Weight Loss Consultation",
        slug="weight-loss",
        description=(
            "Personalized consultation with tailored plans for sustainable weight loss, "
            "available for 3-month (6–10 kg) and 6-month (18–20 kg) programs."
        ),
        image="images/weight-loss.png",
        fee="₹1000",
    ),
    Service(
        title="Medical Management Consultation",
        slug="medical-management",
        description=(
            "Consultation for medical nutrition therapy in conditions like PCOS, Diabetes, "
            "Thyroid, Hypertension, CKD, and more."
        ),
        image="images/medical-management.png",
        fee="₹1000",
    ),
    Service(
        title="Kids Nutrition Consultation",
        slug="kids-nutrition",
        description=(
            "Nutritional consultation for babies (6 months–2 years) and kids (3–18 years). "
            "Includes solid food introduction and growth-focused meal plans."
        ),
        image="images/kids-nutrition.png",
        fee="₹1000",
    ),
    Service(
        title="Wedding Glow Consultation",
        slug="wedding-glow",
        description=(
            "For Brides & Grooms: get customized diet consultation to achieve glowing skin, "
            "high energy, and healthy balance before your big day."
        ),
        image="images/wedding-glow.png",
        fee="₹1000",
    ),
    Service(
        title="Corporate Wellness Consultation",
        slug="corporate-plan",
        description=(
            "Comprehensive consultation for corporate wellness, including health assessments, "
            "workshops, and personalized employee nutrition plans."
        ),
        image="images/corporate.png",
        fee="₹1000",
    ),
)

PLANS: tuple[Plan, ...] = (
    Plan(
        slug="weight-loss",
        name="Weight Loss Program",
        long_description=(
            "A structured program built around your routine, food preferences and body "
            "measurements, with regular follow-ups to keep progress steady."
        ),
        packages=(
            Package(
                slug="weight-loss-3-months",
                name="3 Month Program",
                price=9000,
                duration="3 months",
                features=("Target 6–10 kg", "Fortnightly diet revisions", "Chat support"),
            ),
            Package(
                slug="weight-loss-6-months",
                name="6 Month Program",
                price=16000,
                duration="6 months",
                features=("Target 18–20 kg", "Fortnightly diet revisions", "Chat support"),
            ),
        ),
    ),
    Plan(
        slug="medical-management",
        name="Medical Management",
        long_description=(
            "Medical nutrition therapy for PCOS, diabetes, thyroid disorders, hypertension, "
            "CKD and other conditions, aligned with your ongoing treatment."
        ),
        price=1000,
        features=("Condition-specific diet chart", "Review of recent reports"),
    ),
    Plan(
        slug="kids-nutrition",
        name="Kids Nutrition",
        long_description="Growth-focused meal planning for children aged 3 to 18 years.",
        price=1000,
        features=("Age-appropriate portions", "School tiffin ideas"),
    ),
    Plan(
        slug="baby-solid-food",
        name="Baby Solid Food Introduction",
        long_description="Guided introduction of solid foods for babies from 6 months to 2 years.",
        packages=(
            Package(
                slug="baby-solid-food-6-12-months",
                name="6–12 Months",
                price=1000,
                duration="40 min",
                features=("First foods schedule", "Texture progression"),
            ),
            Package(
                slug="baby-solid-food-1-2-years",
                name="1–2 Years",
                price=1000,
                duration="40 min",
                features=("Family food transition", "Picky eating guidance"),
            ),
        ),
    ),
    Plan(
        slug="wedding-glow",
        name="Wedding Glow",
        long_description="Pre-wedding nutrition for brides and grooms focused on skin, energy and balance.",
        price=1000,
        features=("Skin-friendly foods", "Energy planning for events"),
    ),
    Plan(
        slug="corporate-plan",
        name="Corporate Wellness",
        long_description="Health assessments, workshops and employee nutrition plans for teams.",
        price=1000,
        features=("Team health assessment", "Workshop sessions"),
    ),
)


def find_plan(slug: str | None) -> Plan | None:
    return next((plan for plan in PLANS if plan.slug == slug), None)


def resolve_booking_plan(slug: str | None) -> tuple[Plan, Package | None] | None:
    """Resolve a plan or package slug to the plan being booked."""

    if not slug:
        return None
    for plan in PLANS:
        if plan.slug == slug:
            return plan, None
        for package in plan.packages:
            if package.slug == slug:
                return plan, package
    return None
