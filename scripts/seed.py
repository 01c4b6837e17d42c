"""Database Seed Script - Populates the service price list, plans and demo wallets"""
import asyncio
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.config import settings
from app.database import create_engine, create_session_factory, init_db, close_db
from app.services.cost_catalog import CostCatalog
from app.services.exceptions import PaymentAlreadyProcessed
from app.services.purchase_service import PurchaseService
from app.services.wallet_service import WalletService


DEMO_USERS = [
    # (user_id, plan name to buy or None)
    ("demo_alice", "Pro Monthly"),
    ("demo_bob", None),
]


async def seed_database():
    """Seed the database with initial data"""
    print("=" * 60)
    print("DATABASE SEEDING STARTED")
    print("=" * 60)

    engine = create_engine(settings.DATABASE_URL)
    session_factory = create_session_factory(engine)

    try:
        if settings.AUTO_CREATE_DB_SCHEMA:
            await init_db(engine)

        async with session_factory() as session:
            catalog = CostCatalog(session)

            print("\n1. Seeding service costs and plans...")
            await catalog.seed_defaults()

            for service_name, cost in (await catalog.list_costs()).items():
                print(f"   - {service_name}: {cost} tokens")

            plans = {p.name: p for p in await catalog.get_all_plans()}
            for plan in plans.values():
                print(f"   - {plan.name}: {plan.tokens} tokens for {plan.price}")

            print("\n2. Creating demo wallets...")
            wallets = WalletService(session, catalog=catalog)
            purchases = PurchaseService(session, wallet_service=wallets, catalog=catalog)

            for user_id, plan_name in DEMO_USERS:
                wallet, provisioning = await wallets.ensure_wallet(user_id)
                print(f"   - {user_id}: {provisioning.value}, balance {wallet.balance_tokens}")

                if plan_name:
                    try:
                        result = await purchases.process_purchase(
                            user_id,
                            plans[plan_name].id,
                            f"seed_{user_id}_{plan_name.lower().replace(' ', '_')}",
                        )
                        print(f"     bought {plan_name}, balance {result.new_balance}")
                    except PaymentAlreadyProcessed:
                        print(f"     {plan_name} already purchased")

        print("\n" + "=" * 60)
        print("DATABASE SEEDING COMPLETED SUCCESSFULLY")
        print("=" * 60)

        print("\nNEXT STEPS:")
        print("   1. Start the API server: uvicorn app.main:app --reload")
        print(f"   2. Visit: http://localhost:{settings.PORT}/docs")
    finally:
        await close_db(engine)


async def main():
    """Main entry point"""
    try:
        await seed_database()
    except Exception as e:
        print(f"\nSeeding failed: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
