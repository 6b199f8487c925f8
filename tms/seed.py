"""Populate the database with two users and a batch of random shipments.

Existing users and shipments are removed first. Run with ``python -m tms.seed``.
"""

import random
from datetime import datetime, timedelta, timezone
from typing import Optional
from sqlalchemy.orm import Session
from tms.auth_local import hash_password
from tms.application.service import generate_tracking_number
from tms.core import get_logger, setup_logging
from tms.core_settings import Settings, get_settings
from tms.domain.models import Shipment, ShipmentPriority, ShipmentStatus, User, UserRole
from tms.infrastructure.db import build_engine, build_session_factory, init_models

logger = get_logger(__name__)

SHIPMENT_COUNT = 50

SHIPPER_NAMES = [
    "Acme Corp", "Global Trade Inc", "Fast Freight LLC", "Prime Logistics",
    "Atlas Shipping", "Cargo Express", "Swift Delivery", "Horizon Freight",
    "Peak Transport", "Blue Wave Shipping",
]

CARRIER_NAMES = [
    "FedEx", "UPS", "DHL", "USPS", "XPO Logistics",
    "J.B. Hunt", "Schneider", "Old Dominion", "Estes Express", "YRC Freight",
]

CITIES = [
    ("New York", "NY", "10001"), ("Los Angeles", "CA", "90001"),
    ("Chicago", "IL", "60601"), ("Houston", "TX", "77001"),
    ("Phoenix", "AZ", "85001"), ("Philadelphia", "PA", "19101"),
    ("San Antonio", "TX", "78201"), ("San Diego", "CA", "92101"),
    ("Dallas", "TX", "75201"), ("Seattle", "WA", "98101"),
    ("Denver", "CO", "80201"), ("Boston", "MA", "02101"),
]

STREETS = [
    "123 Main St", "456 Oak Ave", "789 Industrial Blvd", "321 Commerce Dr",
    "654 Warehouse Way", "987 Distribution Ln", "741 Shipping Rd", "852 Freight Ave",
]

SEED_USERS = [
    ("admin@tms.com", "admin123", "John Admin", UserRole.admin),
    ("employee@tms.com", "employee123", "Jane Employee", UserRole.employee),
]

def random_date(days_ago: int, days_ahead: int = 0) -> datetime:
    offset = random.randint(-days_ago, days_ahead)
    return datetime.now(timezone.utc) + timedelta(days=offset)

def random_location() -> dict:
    city, state, zip_code = random.choice(CITIES)
    return {
        "address": random.choice(STREETS),
        "city": city,
        "state": state,
        "zip": zip_code,
        "country": "USA",
    }

def random_shipment(creator: User, taken: set) -> Shipment:
    status = random.choice(list(ShipmentStatus))
    created_at = random_date(30)
    tracking_number = generate_tracking_number()
    while tracking_number in taken:
        tracking_number = generate_tracking_number()
    taken.add(tracking_number)
    return Shipment(
        shipper_name=random.choice(SHIPPER_NAMES),
        carrier_name=random.choice(CARRIER_NAMES),
        pickup_location=random_location(),
        delivery_location=random_location(),
        tracking_number=tracking_number,
        status=status,
        priority=random.choice(list(ShipmentPriority)),
        rate=float(random.randint(100, 5099)),
        weight=float(random.randint(10, 10009)),
        estimated_delivery=random_date(5, 14),
        actual_delivery=random_date(7) if status == ShipmentStatus.DELIVERED else None,
        flagged=random.random() > 0.85,
        notes="Handle with care - fragile items" if random.random() > 0.7 else None,
        created_by_id=creator.id,
        created_at=created_at,
        updated_at=created_at,
    )

def seed(db: Session, settings: Settings, shipment_count: int = SHIPMENT_COUNT) -> None:
    db.query(Shipment).delete()
    db.query(User).delete()
    db.commit()
    logger.info("Cleared existing data")

    users = [
        User(
            email=email,
            password_hash=hash_password(password, rounds=settings.BCRYPT_ROUNDS),
            name=name,
            role=role,
        )
        for email, password, name, role in SEED_USERS
    ]
    db.add_all(users)
    db.flush()

    taken: set = set()
    db.add_all(random_shipment(random.choice(users), taken) for _ in range(shipment_count))
    db.commit()
    logger.info(f"Seeded {len(users)} users and {shipment_count} shipments")

def main(settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    setup_logging(service_name=f"{settings.SERVICE_NAME}-seed", level=settings.LOG_LEVEL)
    engine = build_engine(settings)
    init_models(engine)
    session_factory = build_session_factory(engine)
    with session_factory() as db:
        seed(db, settings)
    for email, password, _, role in SEED_USERS:
        print(f"{role.value}: {email} / {password}")

if __name__ == "__main__":
    main()
