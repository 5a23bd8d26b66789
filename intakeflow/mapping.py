"""Translate UI selections into the payloads the intake service accepts.

The tables below are closed and must track the backend's accepted enum
values. A label missing from a table is forwarded unchanged unless strict
mode is on, in which case :class:`UnmappedLabelError` is raised.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Sequence

from .constants import TIMELINE_OPTIONS
from .contracts import (
    FeatureSelection,
    IdentitySection,
    IndustrySelection,
    ServiceSelection,
    TechnologySelection,
)
from .errors import UnmappedLabelError

logger = logging.getLogger(__name__)


SERVICE_CATEGORY_CODES: Dict[str, str] = {
    "Software Development": "SOFTWARE_DEVELOPMENT",
    "Web Development": "WEB_DEVELOPMENT",
    "Mobile App Development": "MOBILE_APP_DEVELOPMENT",
    "UI/UX Design": "UI_UX_DESIGN",
    "Digital Marketing": "DIGITAL_MARKETING",
    "Cloud & DevOps": "CLOUD_AND_DEVOPS",
    "Data & Analytics": "DATA_AND_ANALYTICS",
    "AI & Machine Learning": "AI_AND_MACHINE_LEARNING",
    "Quality Assurance": "QUALITY_ASSURANCE",
    "IT Consulting": "IT_CONSULTING",
}

INDUSTRY_CATEGORY_CODES: Dict[str, str] = {
    "Technology": "TECHNOLOGY",
    "Healthcare": "HEALTHCARE",
    "Finance": "FINANCE",
    "Retail": "RETAIL",
    "Education": "EDUCATION",
    "Manufacturing": "MANUFACTURING",
    "Entertainment": "ENTERTAINMENT",
    "Other": "OTHER",
}

SUB_INDUSTRY_CODES: Dict[str, str] = {
    "SaaS": "SAAS",
    "E-commerce": "ECOMMERCE",
    "Mobile Apps": "MOBILE_APPS",
    "Web Development": "WEB_DEVELOPMENT",
    "AI/ML": "AI_ML",
    "Cybersecurity": "CYBERSECURITY",
    "Cloud Computing": "CLOUD_COMPUTING",
    "IoT": "IOT",
    "Blockchain": "BLOCKCHAIN",
    "Gaming": "GAMING",
}

TECHNOLOGY_CATEGORY_CODES: Dict[str, str] = {
    "Frontend Technologies": "FRONTEND",
    "Backend Technologies": "BACKEND",
    "Database Technologies": "DATABASE",
    "AI & Data Science": "AI_AND_DATA_SCIENCE",
    "DevOps & Infrastructure": "DEVOPS_AND_INFRASTRUCTURE",
    "Mobile Technologies": "MOBILE",
}

TECHNOLOGY_CODES: Dict[str, str] = {
    "React": "REACT",
    "Next.js": "NEXTJS",
    "Vue.js": "VUEJS",
    "Angular": "ANGULAR",
    "Svelte": "SVELTE",
    "Node.js": "NODEJS",
    "Express": "EXPRESS",
    "Django": "DJANGO",
    "FastAPI": "FASTAPI",
    "Ruby on Rails": "RUBY_ON_RAILS",
    "Spring Boot": "SPRING_BOOT",
    "PostgreSQL": "POSTGRESQL",
    "MySQL": "MYSQL",
    "MongoDB": "MONGODB",
    "Redis": "REDIS",
    "Firebase": "FIREBASE",
    "TensorFlow": "TENSORFLOW",
    "PyTorch": "PYTORCH",
    "Docker": "DOCKER",
    "Kubernetes": "KUBERNETES",
    "AWS": "AWS",
    "React Native": "REACT_NATIVE",
    "Flutter": "FLUTTER",
    "Swift": "SWIFT",
    "Kotlin": "KOTLIN",
}

FEATURE_CATEGORY_CODES: Dict[str, str] = {
    "User Management": "USER_MANAGEMENT",
    "Authentication": "AUTHENTICATION",
    "Payment Processing": "PAYMENT_PROCESSING",
    "Analytics": "ANALYTICS",
    "Notifications": "NOTIFICATIONS",
    "File Management": "FILE_MANAGEMENT",
    "Search": "SEARCH",
    "API Integration": "API_INTEGRATION",
    "Reporting": "REPORTING",
    "Multi-language Support": "MULTI_LANGUAGE_SUPPORT",
    "Accessibility": "ACCESSIBILITY",
    "Offline Support": "OFFLINE_SUPPORT",
}


def map_label(
    table_name: str, table: Mapping[str, str], label: str, strict: bool = False
) -> str:
    """Return the backend code for ``label``.

    Labels that already are backend codes map to themselves.
    """
    if label in table:
        return table[label]
    if label in table.values():
        return label
    if strict:
        raise UnmappedLabelError(table_name, label)
    logger.warning(f"Forwarding unmapped {table_name} label {label!r} unchanged")
    return label


def identity_payload(identity: IdentitySection) -> Dict[str, Any]:
    """Draft-creation body; optional blanks are omitted."""
    payload: Dict[str, Any] = {
        "fullName": identity.full_name.strip(),
        "businessEmail": identity.business_email.strip(),
        "companyName": identity.company_name.strip(),
        "businessType": identity.business_type.strip(),
        "referralSource": identity.referral_source.strip(),
    }
    optional = {
        "phoneNumber": identity.phone_number,
        "companyWebsite": identity.company_website,
        "businessAddress": identity.business_address,
    }
    for key, value in optional.items():
        if value and value.strip():
            payload[key] = value.strip()
    return payload


def services_payload(
    services: Sequence[ServiceSelection], strict: bool = False
) -> List[Dict[str, Any]]:
    return [
        {
            "name": map_label("service category", SERVICE_CATEGORY_CODES, s.category, strict),
            "childServices": list(s.services),
        }
        for s in services
    ]


def industries_payload(
    industries: Sequence[IndustrySelection], strict: bool = False
) -> List[Dict[str, Any]]:
    """Group flat industry picks under their mapped category."""
    grouped: Dict[str, List[str]] = {}
    for item in industries:
        category = map_label(
            "industry category", INDUSTRY_CATEGORY_CODES, item.category, strict
        )
        bucket = grouped.setdefault(category, [])
        if item.industry:
            bucket.append(
                map_label("sub-industry", SUB_INDUSTRY_CODES, item.industry, strict)
            )
    return [
        {"category": category, "subIndustries": subs}
        for category, subs in grouped.items()
    ]


def technologies_payload(
    technologies: Sequence[TechnologySelection], strict: bool = False
) -> List[Dict[str, Any]]:
    return [
        {
            "category": map_label(
                "technology category", TECHNOLOGY_CATEGORY_CODES, t.category, strict
            ),
            "technologies": [
                map_label("technology", TECHNOLOGY_CODES, name, strict)
                for name in t.technologies
            ],
        }
        for t in technologies
    ]


def features_payload(
    features: Sequence[FeatureSelection], strict: bool = False
) -> List[Dict[str, Any]]:
    return [
        {
            "category": map_label(
                "feature category", FEATURE_CATEGORY_CODES, f.category, strict
            ),
            "features": list(f.features),
        }
        for f in features
    ]


def timeline_payload(option: str) -> Dict[str, Any]:
    """Unknown timeline keys fall back to the standard schedule."""
    code, rush_fee, days = TIMELINE_OPTIONS.get(option, TIMELINE_OPTIONS["standard"])
    return {"option": code, "rushFeePercent": rush_fee, "estimatedDays": days}
