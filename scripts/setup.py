#!/usr/bin/env python3
"""Setup script for the EV rental API: migrate the schema and seed sample data."""

import asyncio
import logging
import sys
from datetime import timedelta
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select

from evrental.core import database as db_module
from evrental.core.database import atomic, close_db, init_db
from evrental.core.security import hash_password
from evrental.core.timeutils import utcnow
from evrental.models import Promotion, Station, User, UserRole, Vehicle, VehicleType

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_PASSWORD = "Password123!"


def run_migrations() -> None:
    """Upgrade the database to the latest revision."""
    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))

    logger.info("Running database migrations...")
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


async def create_sample_data() -> None:
    """Create stations, a small fleet, one user per role and a promotion."""
    await init_db(create_tables=False)
    logger.info("Creating sample data...")

    try:
        async with db_module.database.session_factory() as db:
            existing = await db.scalar(select(func.count()).select_from(Station))
            if existing:
                logger.info("Sample data already exists, skipping...")
                return

            async with atomic(db):
                central = Station(
                    name="District 1 Central",
                    address="12 Nguyen Hue, District 1, Ho Chi Minh City",
                    latitude=10.7769,
                    longitude=106.7009,
                    capacity=30,
                    contact_phone="0281234567",
                )
                airport = Station(
                    name="Tan Son Nhat Airport",
                    address="Truong Son, Tan Binh, Ho Chi Minh City",
                    latitude=10.8184,
                    longitude=106.6588,
                    capacity=50,
                )
                db.add_all([central, airport])
                await db.flush()

                fleet = [
                    (central, VehicleType.CAR, "VinFast", "VF 8", "51A-123.45", 150000, 2000000),
                    (central, VehicleType.SCOOTER, "VinFast", "Evo200", "59X1-678.90", 30000, 500000),
                    (airport, VehicleType.CAR, "VinFast", "VF 5", "51A-555.66", 120000, 1500000),
                    (airport, VehicleType.MOTORBIKE, "Dat Bike", "Weaver++", "59X2-111.22", 40000, 500000),
                ]
                for station, kind, brand, model, plate, hourly_rate, deposit in fleet:
                    db.add(Vehicle(
                        station_id=station.id,
                        type=kind,
                        brand=brand,
                        model=model,
                        license_plate=plate,
                        hourly_rate=hourly_rate,
                        deposit_amount=deposit,
                    ))

                password_hash = hash_password(SAMPLE_PASSWORD)
                db.add_all([
                    User(email="admin@evrental.local", name="Admin", password_hash=password_hash,
                         role=UserRole.ADMIN),
                    User(email="staff@evrental.local", name="Station Staff", password_hash=password_hash,
                         role=UserRole.STAFF, station_id=central.id),
                    User(email="renter@evrental.local", name="Sample Renter", password_hash=password_hash,
                         role=UserRole.RENTER, phone="0901234567"),
                ])

                now = utcnow()
                db.add(Promotion(
                    code="WELCOME10",
                    description="10% off the base price for new renters",
                    discount=0.10,
                    valid_from=now,
                    valid_until=now + timedelta(days=90),
                ))

        logger.info("Sample data created successfully!")

    except Exception as e:
        logger.error(f"Failed to create sample data: {e}")
        raise

    finally:
        await close_db()


def main() -> None:
    """Main setup function."""
    logger.info("Starting EV rental API setup...")

    # Alembic's env.py drives its own event loop, so migrate before entering ours
    run_migrations()

    asyncio.run(create_sample_data())

    logger.info("Setup completed successfully!")
    logger.info(f"Sample accounts use the password {SAMPLE_PASSWORD!r}")
    logger.info("You can now start the API server with: cd server && uvicorn evrental.main:app --reload")


if __name__ == "__main__":
    main()
